import pytest
from sqlalchemy import update

from stackgame.errors import InvalidInput, NameUnavailable
from stackgame.models import db, User, Score, DEFAULT_NAME
from stackgame.services.aggregator import merge_session, submit_session, sync_sessions
from stackgame.services.identity import resolve_device_identity, resolve_provider_identity
from stackgame.services.leaderboard import top_entries, rank_of
from stackgame.services.ledger import list_recent_scores
from stackgame.services.names import is_name_available, try_rename, claim_name
from stackgame.services.session import SessionResult


def session(score, **kwargs):
    return SessionResult.from_payload(dict(score=score, **kwargs))


def test_session_payload_defaults(flask_app):
    result = SessionResult.from_payload({'score': 12})
    assert result.score == 12
    assert result.max_combo == 0
    assert result.perfects == 0
    assert result.xp_earned == 0
    assert result.zone == ''
    assert result.achievements == []
    assert result.session_key is None


@pytest.mark.parametrize('payload', [
    {},
    {'score': None},
    {'score': '10'},
    {'score': -5},
    {'score': True},
    {'score': 1.5},
    {'score': 3, 'maxCombo': -1},
    {'score': 3, 'achievements': 'a'},
    {'score': 3, 'zone': 7},
    {'score': 3, 'sessionId': 'k' * 65},
    [1, 2],
])
def test_session_payload_rejects_bad_input(flask_app, payload):
    with pytest.raises(InvalidInput):
        SessionResult.from_payload(payload)


def test_session_payload_accepts_whole_floats(flask_app):
    assert SessionResult.from_payload({'score': 40.0}).score == 40


def test_session_key_is_kept_whole(flask_app):
    key = 'k' * 64
    assert SessionResult.from_payload({'score': 1, 'sessionId': key}).session_key == key
    assert SessionResult.from_payload({'score': 1, 'sessionId': 7}).session_key == '7'


def test_device_identity_is_created_once(flask_app):
    first = resolve_device_identity('device-1', 'Stacker')
    again = resolve_device_identity('device-1', 'Other')
    assert first.id == again.id
    assert again.display_name == 'Stacker'
    assert again.provider == 'anon'
    assert User.query.count() == 1


def test_device_identity_defaults_name(flask_app):
    user = resolve_device_identity('device-2')
    assert user.display_name == DEFAULT_NAME
    assert user.email is None


def test_creation_with_taken_name_falls_back_to_default(flask_app):
    resolve_device_identity('device-1', 'Stacker')
    second = resolve_device_identity('device-2', 'stacker')
    assert second.display_name == DEFAULT_NAME


def test_default_names_may_be_shared(flask_app):
    a = resolve_device_identity('device-1')
    b = resolve_device_identity('device-2')
    assert a.display_name == b.display_name == DEFAULT_NAME


def test_provider_identity_create_and_refresh(flask_app):
    user = resolve_provider_identity('google', {
        'id': 'g-1', 'name': 'Alice', 'email': 'a@example.com',
        'avatar': 'https://img/a.png'})
    assert user.display_name == 'Alice'
    assert user.email == 'a@example.com'

    again = resolve_provider_identity('google', {
        'id': 'g-1', 'name': 'Alicia', 'email': None, 'avatar': ''})
    assert again.id == user.id
    assert again.display_name == 'Alicia'
    assert again.email == 'a@example.com'
    assert again.avatar_url == 'https://img/a.png'


def test_provider_identity_requires_id(flask_app):
    with pytest.raises(InvalidInput):
        resolve_provider_identity('google', {'name': 'NoId'})


def test_name_availability_rules(flask_app):
    user = resolve_device_identity('device-1', 'Stacker')
    assert not is_name_available('')
    assert not is_name_available('x')
    assert not is_name_available('Player')
    assert not is_name_available('Guest')
    assert not is_name_available('STACKER')
    assert is_name_available('STACKER', excluded_user_id=user.id)
    assert is_name_available('Builder')


def test_default_names_are_reserved_in_any_case(flask_app):
    resolve_device_identity('device-1')
    other = resolve_device_identity('device-2', 'Builder')

    for name in ('player', 'PLAYER', 'guest', ' gUeSt '):
        assert not is_name_available(name)
        assert try_rename(other, name) is False
    db.session.commit()
    assert db.session.get(User, other.id).display_name == 'Builder'
    assert [u.display_name for u in User.query.order_by(User.id)] == ['Player', 'Builder']


def test_creation_with_reserved_name_in_other_case_uses_default(flask_app):
    user = resolve_device_identity('device-1', 'PLAYER')
    assert user.display_name == DEFAULT_NAME
    assert user.name_key is None


def test_rename_to_taken_name_keeps_old_name(flask_app):
    resolve_device_identity('device-1', 'Stacker')
    other = resolve_device_identity('device-2', 'Builder')

    assert try_rename(other, 'stacker') is False
    db.session.commit()
    assert db.session.get(User, other.id).display_name == 'Builder'


def test_rename_to_free_name(flask_app):
    user = resolve_device_identity('device-1', 'Stacker')
    assert try_rename(user, 'Tower') is True
    db.session.commit()
    assert user.display_name == 'Tower'
    assert user.name_key == 'tower'


def test_claim_name_raises_when_taken(flask_app):
    resolve_device_identity('device-1', 'Stacker')
    other = resolve_device_identity('device-2')
    with pytest.raises(NameUnavailable):
        claim_name(other, 'Stacker')


def test_claim_name_conflict_at_write_keeps_old_name(flask_app, monkeypatch):
    from stackgame.services import names

    resolve_device_identity('device-1', 'Stacker')
    other = resolve_device_identity('device-2', 'Builder')

    # Another request takes the name between the check and the write
    monkeypatch.setattr(names, 'is_name_available', lambda *args, **kwargs: True)
    with pytest.raises(NameUnavailable):
        claim_name(other, 'stacker')
    assert other.display_name == 'Builder'

    db.session.commit()
    assert db.session.get(User, other.id).name_key == 'builder'
    assert User.query.filter_by(name_key='stacker').count() == 1


def test_concurrent_creation_returns_existing_user(flask_app, monkeypatch):
    from stackgame.services import identity

    first = resolve_device_identity('device-1', 'Stacker')
    real_find_user = identity.find_user
    calls = []

    # The first lookup misses, as if the other request had not committed yet
    def racing_find_user(provider, provider_id):
        calls.append(provider_id)
        if len(calls) == 1:
            return None
        return real_find_user(provider, provider_id)

    monkeypatch.setattr(identity, 'find_user', racing_find_user)
    again = resolve_device_identity('device-1', 'Tower')

    assert len(calls) == 2
    assert again.id == first.id
    assert again.display_name == 'Stacker'
    assert User.query.count() == 1


def test_submit_updates_counters(flask_app):
    user = resolve_device_identity('device-1')
    submit_session(user, session(10, maxCombo=4, perfects=2, xpEarned=5))
    user, recorded = submit_session(user, session(7, maxCombo=9, perfects=1, xpEarned=3))

    assert recorded is True
    assert user.games_played == 2
    assert user.total_score == 17
    assert user.best_score == 10
    assert user.best_combo == 9
    assert user.total_perfects == 3
    assert user.xp == 8
    assert Score.query.filter_by(user_id=user.id).count() == 2


def test_best_values_never_decrease(flask_app):
    user = resolve_device_identity('device-1')
    best = []
    for score, combo in [(5, 3), (50, 1), (20, 8), (0, 0)]:
        user, _ = submit_session(user, session(score, maxCombo=combo))
        best.append((user.best_score, user.best_combo))
    assert best == [(5, 3), (50, 3), (50, 8), (50, 8)]


def test_merge_keeps_increment_from_concurrent_writer(flask_app):
    user = resolve_device_identity('device-1')
    assert user.games_played == 0

    # Another request's merge lands after we loaded the row
    db.session.execute(
        update(User).where(User.id == user.id).values(
            best_score=10, games_played=User.games_played + 1,
            total_score=User.total_score + 10)
        .execution_options(synchronize_session=False))
    assert user.games_played == 0

    user, _ = submit_session(user, session(20))
    assert user.games_played == 2
    assert user.total_score == 30
    assert user.best_score == 20


def test_achievements_merge_without_duplicates(flask_app):
    user = resolve_device_identity('device-1')
    submit_session(user, session(1, achievements=['a', 'b']))
    user, _ = submit_session(user, session(1, achievements=['b', 'c']))
    assert sorted(user.achievements) == ['a', 'b', 'c']


def test_merge_session_returns_refreshed_user(flask_app):
    user = resolve_device_identity('device-1')
    merged = merge_session(user, session(9, xpEarned=2))
    db.session.commit()
    assert merged.best_score == 9
    assert merged.xp == 2


def test_submit_with_player_name_renames(flask_app):
    user = resolve_device_identity('device-1')
    user, _ = submit_session(user, session(3), player_name='Tower')
    assert user.display_name == 'Tower'


def test_replayed_session_key_is_ignored(flask_app):
    user = resolve_device_identity('device-1')
    submit_session(user, session(10, sessionId='abc'))
    user, recorded = submit_session(user, session(10, sessionId='abc'))
    assert recorded is False
    assert user.games_played == 1
    assert user.total_score == 10


def test_sync_skips_invalid_sessions(flask_app):
    user = resolve_device_identity('device-new')
    synced = sync_sessions(user, [{'score': 5}, {'score': -1}, {'score': 8}])
    assert synced == 2
    assert user.best_score == 8
    assert user.games_played == 2
    assert Score.query.filter_by(user_id=user.id).count() == 2


def test_sync_skips_duplicate_keys_within_batch(flask_app):
    user = resolve_device_identity('device-1')
    synced = sync_sessions(user, [{'score': 5, 'sessionId': 's1'},
                                  {'score': 5, 'sessionId': 's1'}])
    assert synced == 1


def test_sync_skips_session_recorded_concurrently(flask_app, monkeypatch):
    from stackgame.services import aggregator

    user = resolve_device_identity('device-1')
    # The replay check misses, so the unique ledger key has to catch it
    monkeypatch.setattr(aggregator, 'has_session', lambda *args: False)
    synced = sync_sessions(user, [{'score': 5, 'sessionId': 's1'},
                                  {'score': 7, 'sessionId': 's1'},
                                  {'score': 9}])
    assert synced == 2
    assert user.games_played == 2
    assert user.total_score == 14
    assert Score.query.filter_by(user_id=user.id).count() == 2


def test_sync_requires_list(flask_app):
    user = resolve_device_identity('device-1')
    with pytest.raises(InvalidInput):
        sync_sessions(user, {'score': 5})


def test_recent_scores_newest_first(flask_app):
    user = resolve_device_identity('device-1')
    for score in (1, 2, 3):
        submit_session(user, session(score))

    recent = list_recent_scores(user.id, limit=2)
    assert [record.score for record in recent] == [3, 2]
    # Calling again restarts the read
    assert [r.score for r in list_recent_scores(user.id)] == [3, 2, 1]


def test_leaderboard_order_and_ties(flask_app):
    scores = {'d1': 30, 'd2': 50, 'd3': 30, 'd4': 0}
    users = {}
    for device, score in scores.items():
        users[device] = resolve_device_identity(device)
        if score:
            submit_session(users[device], session(score))

    entries = top_entries()
    assert [e['score'] for e in entries] == [50, 30, 30, 0]
    assert entries[1]['id'] < entries[2]['id']
    assert entries[0]['rank'] == 1
    assert set(entries[0]) == {'rank', 'id', 'name', 'score', 'avatar', 'xp'}
    assert rank_of(users['d3']) == 2


def test_leaderboard_is_capped(flask_app):
    for index in range(55):
        resolve_device_identity(f'device-{index}')
    assert len(top_entries(100)) == 50
    assert len(top_entries(5)) == 5
    assert top_entries(0) == []


def test_top_scores_command(flask_app):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['top-scores'])
    assert 'No players yet.' in result.output

    user = resolve_device_identity('device-1', 'Stacker')
    submit_session(user, session(77))
    # End the open transaction before the command reads
    db.session.close()
    result = runner.invoke(args=['top-scores', '--limit', '5'])
    assert result.exit_code == 0
    assert 'Stacker' in result.output
    assert '77' in result.output
