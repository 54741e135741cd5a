import io
import json
import os
from unittest.mock import patch

from utils import database
from utils.chat_proxy import UNAVAILABLE_FALLBACK
from utils.groq_integration import ModelUnavailableError


def test_index_route(client):
    """Landing content lists the feature cards"""
    response = client.get('/')
    data = json.loads(response.data)

    assert response.status_code == 200
    assert data['hero']['headline'] == 'Smart Recovery, Better Results'
    assert len(data['features']) == 8


def test_unknown_route_returns_json_404(client):
    response = client.get('/nowhere')

    assert response.status_code == 404
    assert json.loads(response.data)['status'] == 'error'


def test_chat_function_success(client, doctor):
    with patch('utils.chat_proxy.get_chat_completion', return_value='Rest it. 1. Ice. 2. Elevate.'):
        response = client.post('/functions/chat', json={'message': 'Sore ankle', 'doctorId': doctor['id']})

    data = json.loads(response.data)
    assert response.status_code == 200
    assert data['doctorName'] == 'Dr. Sarah Chen'
    assert data['specialty'] == 'Physical Therapist'
    assert response.headers['Access-Control-Allow-Origin'] == '*'


def test_chat_function_preflight(client):
    response = client.options('/functions/chat')

    assert response.status_code == 204
    assert 'content-type' in response.headers['Access-Control-Allow-Headers']


def test_chat_function_missing_fields(client):
    response = client.post('/functions/chat', json={'message': 'Hello'})

    assert response.status_code == 400
    assert json.loads(response.data)['error'] == 'Message and doctorId are required'


def test_chat_function_non_json_body(client):
    response = client.post('/functions/chat', data='not json', content_type='text/plain')

    assert response.status_code == 400


def test_chat_function_unknown_doctor(client):
    with patch('utils.chat_proxy.get_chat_completion') as mock_llm:
        response = client.post('/functions/chat', json={'message': 'Hello', 'doctorId': 'missing'})

    assert response.status_code == 404
    mock_llm.assert_not_called()


def test_chat_function_masks_model_failure(client, doctor):
    with patch('utils.chat_proxy.get_chat_completion', side_effect=ModelUnavailableError('down')):
        response = client.post('/functions/chat', json={'message': 'Hello', 'doctorId': doctor['id']})

    assert response.status_code == 200
    assert json.loads(response.data)['response'] == UNAVAILABLE_FALLBACK


def test_open_chat_requires_user(client, doctor):
    response = client.get(f"/api/chat/{doctor['id']}")

    assert response.status_code == 401


def test_open_chat_reuses_conversation(client, doctor, auth_headers):
    first = json.loads(client.get(f"/api/chat/{doctor['id']}", headers=auth_headers).data)
    second = json.loads(client.get(f"/api/chat/{doctor['id']}", headers=auth_headers).data)

    assert first['created'] is True
    assert second['created'] is False
    assert first['conversation_id'] == second['conversation_id']
    assert first['messages'][0]['persisted'] is False


def test_open_chat_unknown_doctor(client, auth_headers):
    response = client.get('/api/chat/missing', headers=auth_headers)

    assert response.status_code == 404


def test_doctor_directory(client, doctor):
    data = json.loads(client.get('/api/doctors').data)
    assert [d['id'] for d in data['doctors']] == [doctor['id']]

    assert client.get(f"/api/doctors/{doctor['id']}").status_code == 200
    assert client.get('/api/doctors/missing').status_code == 404


def test_profile_round_trip(client, doctor, auth_headers):
    assert client.get('/api/profile', headers=auth_headers).status_code == 404

    response = client.put('/api/profile', headers=auth_headers, json={
        'name': 'Alex Patient',
        'age': 34,
        'injury_type': 'ACL tear',
        'recovery_goals': ['Return to running'],
        'preferred_doctor': doctor['id'],
    })
    assert response.status_code == 200

    profile = json.loads(client.get('/api/profile', headers=auth_headers).data)['profile']
    assert profile['injury_type'] == 'ACL tear'
    assert profile['recovery_goals'] == ['Return to running']
    assert profile['updated_at'] is not None


def test_profile_requires_name(client, auth_headers):
    response = client.put('/api/profile', headers=auth_headers, json={'age': 30})

    assert response.status_code == 400


def test_avatar_upload_sets_public_url(client, app, auth_headers, user_id):
    client.put('/api/profile', headers=auth_headers, json={'name': 'Alex'})

    response = client.post(
        '/api/profile/avatar',
        headers=auth_headers,
        data={'file': (io.BytesIO(b'png bytes'), 'me.png')},
        content_type='multipart/form-data'
    )
    data = json.loads(response.data)

    assert response.status_code == 200
    assert data['avatar_url'].startswith('http://testserver/storage/profile-pictures/')
    assert data['avatar_url'].endswith('.png')
    assert database.get_profile(user_id)['avatar_url'] == data['avatar_url']
    stored = os.listdir(os.path.join(app.config['STORAGE_ROOT'], 'profile-pictures'))
    assert len(stored) == 1


def test_profile_update_keeps_avatar_and_preferred_doctor(client, doctor, auth_headers, user_id):
    client.put('/api/profile', headers=auth_headers, json={'name': 'Alex', 'preferred_doctor': doctor['id']})
    avatar_url = json.loads(client.post(
        '/api/profile/avatar',
        headers=auth_headers,
        data={'file': (io.BytesIO(b'png bytes'), 'me.png')},
        content_type='multipart/form-data'
    ).data)['avatar_url']

    response = client.put('/api/profile', headers=auth_headers, json={'name': 'Alex Renamed'})

    assert response.status_code == 200
    profile = database.get_profile(user_id)
    assert profile['name'] == 'Alex Renamed'
    assert profile['avatar_url'] == avatar_url
    assert profile['preferred_doctor'] == doctor['id']


def test_review_requires_preferred_doctor(client, doctor, auth_headers):
    client.put('/api/profile', headers=auth_headers, json={'name': 'Alex'})

    response = client.post('/api/reviews', headers=auth_headers, json={'text': 'Great', 'rating': 5})
    assert response.status_code == 400

    client.put('/api/profile/preferred-doctor', headers=auth_headers, json={'doctor_id': doctor['id']})
    response = client.post('/api/reviews', headers=auth_headers, json={'text': 'Great', 'rating': 5})
    assert response.status_code == 201

    reviews = json.loads(client.get('/api/reviews', headers=auth_headers).data)['reviews']
    assert reviews[0]['doctor_id'] == doctor['id']


def test_review_rating_bounds(client, doctor, auth_headers):
    client.put('/api/profile', headers=auth_headers, json={'name': 'Alex', 'preferred_doctor': doctor['id']})

    response = client.post('/api/reviews', headers=auth_headers, json={'text': 'Ok', 'rating': 9})

    assert response.status_code == 400


def test_feed_filters(client, doctor, auth_headers):
    database.create_post('d1', 'Dr. Sarah Chen', 'PT', 'SC', 'Stretch daily. 1. Calves. 2. Hamstrings.')
    database.create_post('d2', 'Dr. Other', 'PT', 'DO', 'Stay positive!', category='inspiration')
    database.create_post('d3', 'Dr. Other', 'PT', 'DO', 'Mobility work', tags=['rehabilitation'])
    client.put('/api/profile', headers=auth_headers, json={'name': 'Alex', 'preferred_doctor': doctor['id']})

    everything = json.loads(client.get('/api/posts', headers=auth_headers).data)['posts']
    mine = json.loads(client.get('/api/posts?category=my-doctor', headers=auth_headers).data)['posts']
    tips = json.loads(client.get('/api/posts?category=exercise-tips', headers=auth_headers).data)['posts']

    assert len(everything) == 3
    assert [p['author_name'] for p in mine] == ['Dr. Sarah Chen']
    assert mine[0]['formatted']['points'][1]['text'] == 'Hamstrings.'
    assert [p['content'] for p in tips] == ['Mobility work']


def test_like_post(client, auth_headers):
    post = database.create_post('d1', 'Dr. A', 'PT', 'DA', 'Hello')

    first = json.loads(client.post(f"/api/posts/{post['id']}/like", headers=auth_headers).data)
    second = json.loads(client.post(f"/api/posts/{post['id']}/like", headers=auth_headers).data)

    assert (first['likes'], second['likes']) == (1, 2)
    assert client.post('/api/posts/missing/like', headers=auth_headers).status_code == 404


def test_create_post(client, auth_headers):
    response = client.post('/api/posts', headers=auth_headers, json={'content': 'Day 10 of rehab!'})

    assert response.status_code == 201
    assert json.loads(response.data)['post']['author_name'] == 'Alex Patient'


def test_settings_use_configured_theme(client, app, auth_headers):
    data = json.loads(client.get('/api/settings', headers=auth_headers).data)

    assert data['theme'] == app.config['DEFAULT_THEME']
    assert 'dark' in data['themes']


def test_health_record_upload_and_delete(client, app, auth_headers):
    response = client.post(
        '/api/health-records',
        headers=auth_headers,
        data={'file': (io.BytesIO(b'%PDF-1.4'), 'mri report.pdf')},
        content_type='multipart/form-data'
    )
    assert response.status_code == 201
    record = json.loads(response.data)['record']
    assert record['file_name'] == 'mri report.pdf'

    records = json.loads(client.get('/api/health-records', headers=auth_headers).data)['records']
    assert [r['id'] for r in records] == [record['id']]

    response = client.delete(f"/api/health-records/{record['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert database.list_health_records(records[0]['user_id']) == []


def test_health_record_delete_tolerates_missing_file(client, auth_headers, user_id):
    record = database.add_health_record(user_id, 'old.pdf', 'http://testserver/storage/health-records/gone.pdf')

    response = client.delete(f"/api/health-records/{record['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert database.get_health_record(record['id']) is None


def test_health_record_size_limit(client, app, auth_headers):
    app.config['MAX_RECORD_BYTES'] = 4

    response = client.post(
        '/api/health-records',
        headers=auth_headers,
        data={'file': (io.BytesIO(b'too large'), 'scan.pdf')},
        content_type='multipart/form-data'
    )

    assert response.status_code == 400


def test_health_record_name_is_sanitized(client, app, auth_headers):
    response = client.post(
        '/api/health-records',
        headers=auth_headers,
        data={'file': (io.BytesIO(b'%PDF-1.4'), '../../etc/report.pdf')},
        content_type='multipart/form-data'
    )

    assert response.status_code == 201
    record = json.loads(response.data)['record']
    assert record['file_url'].endswith('-etc_report.pdf')

    response = client.post(
        '/api/health-records',
        headers=auth_headers,
        data={'file': (io.BytesIO(b'%PDF-1.4'), '..')},
        content_type='multipart/form-data'
    )

    assert response.status_code == 400


def test_oversized_request_rejected_with_413(client, app, auth_headers):
    app.config['MAX_CONTENT_LENGTH'] = 64

    response = client.post(
        '/api/health-records',
        headers=auth_headers,
        data={'file': (io.BytesIO(b'x' * 1024), 'scan.pdf')},
        content_type='multipart/form-data'
    )

    assert response.status_code == 413
    assert json.loads(response.data)['status'] == 'error'


def test_upload_limit_covers_largest_record(app):
    assert app.config['MAX_CONTENT_LENGTH'] > app.config['MAX_RECORD_BYTES']


def test_delete_account(client, auth_headers, user_id):
    client.put('/api/profile', headers=auth_headers, json={'name': 'Alex'})
    database.add_health_record(user_id, 'a.pdf', 'http://testserver/storage/health-records/a.pdf')

    response = client.delete('/api/account', headers=auth_headers)

    assert response.status_code == 200
    assert database.get_profile(user_id) is None
    assert database.list_health_records(user_id) == []


def test_notifications(client, auth_headers, user_id):
    note = database.create_notification(user_id, 'achievement', 'Streak', 'Seven days in a row')

    unread = json.loads(client.get('/api/notifications?unread=true', headers=auth_headers).data)
    assert [n['id'] for n in unread['notifications']] == [note['id']]

    response = client.post(f"/api/notifications/{note['id']}/read", headers=auth_headers)
    assert response.status_code == 200

    unread = json.loads(client.get('/api/notifications?unread=true', headers=auth_headers).data)
    assert unread['notifications'] == []


def test_wrong_method_returns_json_405(client):
    response = client.delete('/api/doctors')
    data = json.loads(response.data)

    assert response.status_code == 405
    assert data['status'] == 'error'
    assert data['path'] == '/api/doctors'
    assert 'DELETE' in data['message']
