import random

import pytest

from showrunner.services.activities.energizer import (
    CHARGE_RATE,
    INSTRUCTION_SLIDES_1,
    INSTRUCTION_SLIDES_2,
    SPOTLIGHT_BOOST,
    Energizer,
    pick_spotlight_starts,
)


@pytest.fixture()
def energizer(router):
    return router.get_activity_manager('energizer')


def to_movement(router, scheduler, energizer):
    router.switch_activity('energizer')
    scheduler.advance(Energizer.slides_duration_ms(list(INSTRUCTION_SLIDES_1)))
    assert energizer.phase == 'movement'


def to_input(router, scheduler, energizer):
    to_movement(router, scheduler, energizer)
    scheduler.advance(60000 + 12000 + Energizer.slides_duration_ms(list(INSTRUCTION_SLIDES_2)))
    assert energizer.phase == 'sequence_show'
    scheduler.advance(energizer.display_ms)
    assert energizer.phase == 'sequence_input'


def submit(energizer, sid, cells):
    energizer.handle_client_event(sid, {'type': 'energizer_sequence_submit', 'cells': cells})


def wrong_cells(pattern):
    return [{'index': c['index'], 'color': '#000000'} for c in pattern['cells']]


def test_majority_correct_lights_the_stage(router, energizer, add_client, state, transport, scheduler):
    for sid in ('s1', 's2', 's3'):
        add_client(sid)
    add_client('e1', role='entertainer')
    to_input(router, scheduler, energizer)
    pattern = energizer.current_pattern

    submit(energizer, 's1', list(reversed(pattern['cells'])))
    submit(energizer, 's2', pattern['cells'])
    submit(energizer, 's3', wrong_cells(pattern))
    scheduler.advance(20000)

    result = transport.of_type('energizer_sequence_result')[-1]
    assert result == {
        'type': 'energizer_sequence_result',
        'success': True,
        'correctCount': 2,
        'totalParticipants': 3,
        'nextDisplayMs': None,
    }
    assert len(transport.of_type('led_sequence')) == 1
    assert energizer.phase == 'results'

    scheduler.advance(5000)
    assert state.get_activity() == 'lobby'


def test_failure_retries_once_with_longer_display(router, energizer, add_client, state, transport, scheduler):
    add_client('s1')
    add_client('s2')
    to_input(router, scheduler, energizer)
    submit(energizer, 's1', energizer.current_pattern['cells'])
    scheduler.advance(20000)

    first = transport.of_type('energizer_sequence_result')[-1]
    assert first['success'] is False
    assert first['nextDisplayMs'] == 7500
    assert energizer.phase == 'sequence_show'
    assert energizer.attempts == 2
    assert energizer.current_pattern['displayMs'] == 7500

    scheduler.advance(7500)
    assert energizer.phase == 'sequence_input'
    scheduler.advance(20000)

    second = transport.of_type('energizer_sequence_result')[-1]
    assert second['success'] is False
    assert second['nextDisplayMs'] is None
    assert energizer.phase == 'results'
    assert transport.of_type('energizer_phase_change')[-1] == {
        'type': 'energizer_phase_change', 'phase': 'results', 'success': False,
    }
    assert transport.of_type('led_sequence') == []

    scheduler.advance(5000)
    assert state.get_activity() == 'lobby'


def test_no_players_is_a_failure(router, energizer, transport, scheduler):
    to_input(router, scheduler, energizer)
    scheduler.advance(20000)
    result = transport.of_type('energizer_sequence_result')[-1]
    assert result['success'] is False
    assert result['totalParticipants'] == 0


def test_latest_submission_per_player_counts(router, energizer, add_client, transport, scheduler):
    add_client('s1')
    to_input(router, scheduler, energizer)
    pattern = energizer.current_pattern

    submit(energizer, 's1', pattern['cells'])
    submit(energizer, 's1', pattern['cells'])
    submit(energizer, 's1', wrong_cells(pattern))
    scheduler.advance(20000)

    assert transport.of_type('energizer_sequence_result')[0]['correctCount'] == 0


def test_submissions_outside_input_window_are_ignored(router, energizer, add_client, scheduler):
    add_client('s1')
    to_movement(router, scheduler, energizer)
    submit(energizer, 's1', [{'index': 0, 'color': '#ff63c3'}])
    assert energizer.submissions == {}

    to_input(router, scheduler, energizer)
    submit(energizer, 's1', 'not-a-list')
    assert energizer.submissions == {}


def test_motion_charges_only_during_movement(router, energizer, add_client, transport, scheduler):
    add_client('s1')
    router.switch_activity('energizer')
    energizer.handle_client_event('s1', {'type': 'energizer_motion', 'magnitude': 8})
    assert energizer.player_charge == {}

    scheduler.advance(Energizer.slides_duration_ms(list(INSTRUCTION_SLIDES_1)))
    energizer.handle_client_event('s1', {'type': 'energizer_motion', 'magnitude': 8})
    energizer.handle_client_event('s1', {'type': 'energizer_motion', 'magnitude': 'fast'})

    assert energizer.player_charge['s1'] == pytest.approx(CHARGE_RATE)
    assert transport.sent_to('s1', 'energizer_player_update')[-1]['idle'] is False


def test_spotlight_boosts_charge(router, energizer, add_client, scheduler):
    add_client('s1')
    to_movement(router, scheduler, energizer)
    energizer._spotlight_on()

    energizer.handle_client_event('s1', {'type': 'energizer_motion', 'magnitude': 4})

    assert energizer.player_charge['s1'] == pytest.approx(CHARGE_RATE * 0.5 * SPOTLIGHT_BOOST)


def test_swipe_sends_and_clears_charge(router, energizer, add_client, transport, scheduler):
    add_client('s1')
    to_movement(router, scheduler, energizer)
    energizer.player_charge['s1'] = 0.4

    energizer.handle_client_event('s1', {'type': 'energizer_swipe_send'})

    assert transport.of_type('energizer_energy_sent') == [
        {'type': 'energizer_energy_sent', 'playerId': 's1', 'charge': 0.4},
    ]
    assert energizer.player_charge['s1'] == 0.0


def test_entertainer_update_sorted_and_idle_flagged(router, energizer, add_client, transport, scheduler):
    add_client('s1', nickname='slow')
    add_client('s2', nickname='fast')
    to_movement(router, scheduler, energizer)
    energizer.handle_client_event('s1', {'type': 'energizer_motion', 'magnitude': 0.5})
    energizer.handle_client_event('s2', {'type': 'energizer_motion', 'magnitude': 8})
    transport.clear()

    scheduler.advance(750)

    update = transport.of_type('energizer_entertainer_update')[-1]
    assert [p['nickname'] for p in update['players']] == ['fast', 'slow']
    assert [p['idle'] for p in update['players']] == [False, True]
    assert transport.sent_to('s1', 'energizer_player_update')[-1]['idle'] is True


def test_movement_spotlights_turn_on_and_off(router, energizer, transport, scheduler):
    to_movement(router, scheduler, energizer)
    scheduler.advance(60000)

    spotlights = transport.of_type('energizer_spotlight')
    assert [s['active'] for s in spotlights] == [True, False, True, False]
    assert energizer.spotlight_active is False


def test_pick_spotlight_starts():
    rng = random.Random(5)
    for _ in range(50):
        starts = pick_spotlight_starts(rng)
        assert len(starts) == 2
        assert starts == sorted(starts)
        assert all(10000 <= s <= 40000 for s in starts)
        assert starts[1] - starts[0] >= 12000

    assert pick_spotlight_starts(rng, window=(10000, 15000)) == []
    assert len(pick_spotlight_starts(rng, window=(10000, 25000))) == 1


def test_led_payload_has_eight_steps(energizer):
    pattern = energizer.generate_pattern(5000)
    assert len(pattern['cells']) == 5
    assert len({c['index'] for c in pattern['cells']}) == 5

    payload = Energizer.build_led_payload(pattern)

    assert payload['type'] == 'led_sequence'
    assert payload['sequence'] == pattern['sequenceId']
    assert [step['time'] for step in payload['pattern']] == [0, 200, 400, 600, 800, 1000, 1200, 1400]
    lit = [led for led in payload['pattern'][0]['leds'] if led['color'] != '#000000']
    assert lit == [{'id': pattern['cells'][0]['index'], 'color': pattern['cells'][0]['color']}]


def test_disconnect_drops_player_tracking(router, energizer, add_client, scheduler):
    add_client('s1')
    to_input(router, scheduler, energizer)
    energizer.player_charge['s1'] = 0.2
    submit(energizer, 's1', energizer.current_pattern['cells'])

    energizer.on_player_disconnect('s1')

    assert 's1' not in energizer.player_charge
    assert 's1' not in energizer.submissions
