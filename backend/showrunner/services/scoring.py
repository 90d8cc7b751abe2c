import math
from typing import Any, Dict, Iterable, List, Optional

# Average offset at which beat accuracy bottoms out
MAX_BEAT_OFFSET_MS = 500.0


def beat_interval_ms(bpm: float) -> float:
    return 60000.0 / bpm


def tap_offset_ms(elapsed_ms: float, interval_ms: float) -> float:
    """Distance from ``elapsed_ms`` to the nearest beat of the grid."""
    nearest = math.floor(elapsed_ms / interval_ms + 0.5) * interval_ms
    return abs(elapsed_ms - nearest)


def accuracy_from_offset(avg_offset_ms: float) -> float:
    """1.0 for a perfect average, 0.0 at or beyond MAX_BEAT_OFFSET_MS."""
    return max(0.0, 1.0 - avg_offset_ms / MAX_BEAT_OFFSET_MS)


def average_offset(taps: Iterable[Dict[str, Any]]) -> Optional[float]:
    offsets = [
        tap_offset_ms(t['timestamp'] - t['round_start'], beat_interval_ms(t['bpm']))
        for t in taps
    ]
    if not offsets:
        return None
    return sum(offsets) / len(offsets)


def group_accuracies(taps: List[Dict[str, Any]], group_labels) -> List[Dict[str, Any]]:
    """Accuracy summary for every group label, in label order.

    Each tap is measured against the beat grid of the round it was made in.
    """
    results = []
    for label in group_labels:
        group_taps = [t for t in taps if t['group_id'] == label]
        avg = average_offset(group_taps)
        if avg is None:
            results.append({'groupId': label, 'accuracy': 0, 'avgOffset': 0, 'tapCount': 0})
            continue
        results.append({
            'groupId': label,
            'accuracy': accuracy_from_offset(avg),
            'avgOffset': avg,
            'tapCount': len(group_taps),
        })
    return results


def player_accuracies(taps: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Per-player accuracy in order of each player's first tap."""
    by_player: Dict[str, List[Dict[str, Any]]] = {}
    for tap in taps:
        by_player.setdefault(tap['player_id'], []).append(tap)
    return [
        {'playerId': pid, 'accuracy': accuracy_from_offset(average_offset(player_taps)), 'tapCount': len(player_taps)}
        for pid, player_taps in by_player.items()
    ]


def first_max(items: List[Dict[str, Any]], key: str = 'accuracy') -> Optional[Dict[str, Any]]:
    """Highest ``key``; ties go to the earliest item."""
    best = None
    for item in items:
        if best is None or item[key] > best[key]:
            best = item
    return best


def pattern_pairs(cells: Iterable[Dict[str, Any]]) -> set:
    pairs = set()
    for c in cells:
        index, color = c['index'], c['color']
        # Only exact integer indices and string colours name a cell
        if not isinstance(index, int) or isinstance(index, bool) or not isinstance(color, str):
            raise ValueError(f"bad cell {c!r}")
        pairs.add((index, color.lower()))
    return pairs


def is_submission_correct(pattern_cells, submitted_cells) -> bool:
    """Order-independent match on (cell index, colour), colour case-insensitive."""
    try:
        return pattern_pairs(submitted_cells) == pattern_pairs(pattern_cells)
    except (KeyError, TypeError, ValueError):
        return False


def sequence_succeeded(correct_count: int, participants: int) -> bool:
    """Strict majority of client players. No participants counts as a failure."""
    if participants <= 0:
        return False
    return correct_count > participants / 2
