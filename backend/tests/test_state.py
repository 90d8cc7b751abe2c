import pytest

from showrunner.state import Player


def test_add_player_broadcasts_state_then_joined(state, transport):
    state.add_player(Player(id='s1', nickname='Ana', group_id='A'))

    assert transport.types() == ['state_broadcast', 'player_joined']
    snapshot = transport.broadcasts[0]['state']
    assert 's1' in snapshot['players']
    assert snapshot['players']['s1']['groupId'] == 'A'
    assert transport.broadcasts[1]['player']['nickname'] == 'Ana'


def test_remove_player_and_unknown_id(state, transport):
    state.add_player(Player(id='s1', nickname='Ana'))
    transport.clear()

    state.remove_player('s1')
    assert transport.types() == ['state_broadcast', 'player_left']
    assert transport.broadcasts[1]['playerId'] == 's1'
    assert state.get_player('s1') is None

    transport.clear()
    state.remove_player('nobody')
    assert transport.broadcasts == []


def test_join_then_leave_emits_both_events(state, transport):
    state.add_player(Player(id='s1', nickname='Ana'))
    state.remove_player('s1')

    discrete = [t for t in transport.types() if t != 'state_broadcast']
    assert discrete == ['player_joined', 'player_left']
    assert 's1' not in state.get_players()
    assert 's1' not in transport.broadcasts[-2]['state']['players']


def test_set_activity_broadcasts_and_validates(state, transport):
    state.set_activity('beats')
    assert state.get_activity() == 'beats'
    assert transport.types() == ['state_broadcast', 'activity_started']
    assert transport.broadcasts[0]['state']['currentActivity'] == 'beats'
    assert transport.broadcasts[1]['activity'] == 'beats'

    with pytest.raises(ValueError):
        state.set_activity('karaoke')
    assert state.get_activity() == 'beats'


def test_groups_assigned_round_robin_and_wrap(state):
    labels = [state.assign_group() for _ in range(6)]
    assert labels == ['A', 'B', 'C', 'D', 'A', 'B']


def test_snapshot_groups(state):
    assert state.snapshot()['groups'] is None
    state.add_player(Player(id='s1', nickname='a', group_id='A'))
    state.add_player(Player(id='s2', nickname='b', group_id='A'))
    state.add_player(Player(id='e1', nickname='screen', role='entertainer'))
    assert state.snapshot()['groups'] == {'A': ['s1', 's2']}
    assert [p.id for p in state.client_players()] == ['s1', 's2']


def test_get_players_returns_copy(state):
    state.add_player(Player(id='s1', nickname='a'))
    players = state.get_players()
    players.pop('s1')
    assert state.get_player('s1') is not None


def test_reset_clears_roster_and_group_counter(state, transport):
    state.assign_group()
    state.assign_group()
    state.add_player(Player(id='s1', nickname='a'))
    state.set_activity('ar')
    transport.clear()

    state.reset()

    assert state.get_players() == {}
    assert state.get_activity() == 'lobby'
    assert state.assign_group() == 'A'
    assert transport.types() == ['state_broadcast', 'activity_started']


def test_light_test_event(state, transport):
    state.broadcast_light_test(True)
    state.broadcast_light_test(False)
    assert transport.broadcasts == [
        {'type': 'light_test', 'on': True},
        {'type': 'light_test', 'on': False},
    ]
