"""Test the HTTP endpoints."""
import json

from flask_jwt_extended import create_access_token

from checkin import db
from checkin.models.student import Student
from checkin.models.user import UserRole

def test_health_check(client):
    """Test health endpoint."""
    response = client.get('/health')
    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['status'] == 'healthy'

def test_requires_bearer_token(client):
    response = client.post('/sessions/start', json={})
    assert response.status_code == 401
    data = json.loads(response.data)
    assert data['error'] == True
    assert data['code'] == 'unauthorized'

def test_unknown_user_is_unauthorized(client, app):
    token = create_access_token(identity='999')
    response = client.post('/sessions/start', json={},
                           headers={'Authorization': f'Bearer {token}'})
    assert response.status_code == 401

def test_start_session_validation(client, teacher, auth_header):
    """Missing or malformed fields are rejected before any work."""
    response = client.post('/sessions/start', json={}, headers=auth_header(teacher))
    assert response.status_code == 400
    assert json.loads(response.data)['code'] == 'invalid_input'

    response = client.post('/sessions/start', headers=auth_header(teacher), json={
        'group_id': 1, 'session_date': '19/10/2026', 'start_time': '16:00'
    })
    assert response.status_code == 400

def test_start_session_and_reuse(client, group, teacher, auth_header):
    payload = {'group_id': group.id, 'session_date': '2026-10-19', 'start_time': '16:00'}

    response = client.post('/sessions/start', json=payload, headers=auth_header(teacher))
    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['reused'] == False
    assert data['session']['status'] == 'active'
    assert 'token' not in data['session']
    assert data['qr_image'].startswith('data:image/png;base64,')

    again = json.loads(client.post('/sessions/start', json=payload,
                                   headers=auth_header(teacher)).data)['data']
    assert again['reused'] == True
    assert again['token'] == data['token']

def test_start_session_forbidden_for_students(client, group, make_user, auth_header):
    student = make_user(UserRole.STUDENT)
    payload = {'group_id': group.id, 'session_date': '2026-10-19', 'start_time': '16:00'}

    response = client.post('/sessions/start', json=payload, headers=auth_header(student))
    assert response.status_code == 403

def test_start_session_unknown_group(client, admin, auth_header):
    payload = {'group_id': 404, 'session_date': '2026-10-19', 'start_time': '16:00'}

    response = client.post('/sessions/start', json=payload, headers=auth_header(admin))
    assert response.status_code == 404
    assert json.loads(response.data)['code'] == 'not_found'

def test_issue_student_token(client, make_student, teacher, auth_header):
    student = make_student(credits=2)

    response = client.post('/tokens/student', json={'student_id': student.id},
                           headers=auth_header(teacher))
    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['student_name'] == student.full_name
    assert data['credits_remaining'] == 2
    assert data['token'].count('.') == 2

def test_issue_student_token_errors(client, make_student, teacher, auth_header):
    response = client.post('/tokens/student', json={'student_id': 404}, headers=auth_header(teacher))
    assert response.status_code == 404

    broke = make_student(credits=0)
    response = client.post('/tokens/student', json={'student_id': broke.id}, headers=auth_header(teacher))
    assert response.status_code == 400
    assert json.loads(response.data)['code'] == 'insufficient_credit'

    response = client.post('/tokens/student', json={'student_id': 'abc'}, headers=auth_header(teacher))
    assert response.status_code == 400

def test_redeem_student_token(client, make_student, teacher, start_session, auth_header):
    student = make_student(credits=2)
    session = start_session().session
    token = json.loads(client.post('/tokens/student', json={'student_id': student.id},
                                   headers=auth_header(teacher)).data)['data']['token']

    response = client.post('/attendance/redeem', headers=auth_header(teacher),
                           json={'token': token, 'group_session_id': session.id})
    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['ok'] == True
    assert data['student_id'] == student.id
    assert data['credits_remaining'] == 1
    assert data['attendance_id']
    assert data['recorded_at']

    response = client.post('/attendance/redeem', headers=auth_header(teacher),
                           json={'token': token, 'group_session_id': session.id})
    assert response.status_code == 400
    assert json.loads(response.data)['code'] == 'already_used'

def test_student_redeems_session_token(client, make_student, start_session, auth_header):
    student = make_student(credits=1)
    started = start_session()

    response = client.post('/attendance/redeem', headers=auth_header(student.login),
                           json={'token': started.token, 'group_session_id': started.session.id})
    assert response.status_code == 200
    assert json.loads(response.data)['data']['credits_remaining'] == 0

def test_redeem_rejections(client, teacher, start_session, auth_header):
    session = start_session().session

    response = client.post('/attendance/redeem', headers=auth_header(teacher),
                           json={'token': 'garbage', 'group_session_id': session.id})
    assert response.status_code == 400
    assert json.loads(response.data)['code'] == 'malformed'

    response = client.post('/attendance/redeem', headers=auth_header(teacher), json={'token': 'x'})
    assert response.status_code == 400
    assert json.loads(response.data)['code'] == 'invalid_input'

def test_add_credit(client, make_student, secretary, auth_header):
    student = make_student(credits=2)

    response = client.put(f'/students/{student.id}/credit', headers=auth_header(secretary), json={
        'amount': '45.00', 'credits_added': 3, 'method': 'card', 'reference': 'INV-7'
    })
    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['student'] == {'id': student.id, 'credit_balance': 5, 'total_purchased': 5}
    assert data['payment']['credit_delta'] == 3
    assert data['payment']['amount'] == '45.00'
    assert db.session.get(Student, student.id).credit_balance == 5

def test_add_credit_validation(client, make_student, secretary, teacher, auth_header):
    student = make_student(credits=1)
    url = f'/students/{student.id}/credit'

    response = client.put(url, headers=auth_header(secretary), json={'amount': 0, 'credits_added': 2})
    assert response.status_code == 400

    response = client.put(url, headers=auth_header(secretary), json={'amount': 10})
    assert response.status_code == 400

    response = client.put(url, headers=auth_header(teacher), json={'amount': 10, 'credits_added': 1})
    assert response.status_code == 403

    response = client.put('/students/404/credit', headers=auth_header(secretary),
                          json={'amount': 10, 'credits_added': 1})
    assert response.status_code == 404

def test_ledger_view(client, make_student, teacher, auth_header):
    student = make_student(credits=4)

    response = client.get(f'/students/{student.id}/ledger', headers=auth_header(teacher))
    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data['student']['credit_balance'] == 4
    assert len(data['payments']) == 1
    assert data['reconciliation']['consistent'] == True

    response = client.get('/students/404/ledger', headers=auth_header(teacher))
    assert response.status_code == 404

def test_ledger_limit_is_clamped(client, make_student, ledger, secretary, teacher, auth_header):
    student = make_student(credits=1)
    ledger.apply_payment(student.id, amount=20, credits_added=2, actor=secretary)
    url = f'/students/{student.id}/ledger'

    response = client.get(url, headers=auth_header(teacher))
    assert len(json.loads(response.data)['data']['payments']) == 2

    response = client.get(f'{url}?limit=-5', headers=auth_header(teacher))
    assert response.status_code == 200
    payments = json.loads(response.data)['data']['payments']
    assert [p['credit_delta'] for p in payments] == [2]
