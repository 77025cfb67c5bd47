import socket
import threading

import pytest

from gateway import EMAIL_PROMPT, INT, ROLE_PROMPT, ThreadedGatewayServer, login
from services.auth import LoginStatus


@pytest.fixture
def gateway(seeded):
    server = ThreadedGatewayServer(("127.0.0.1", 0), seeded)
    t = threading.Thread(target=server.serve_forever, daemon=True)
    t.start()
    yield server.server_address
    server.shutdown()
    server.server_close()


def test_student_login(gateway):
    host, port = gateway
    result = login(host, port, 2, "ann@x.com", "pw")
    assert result.ok
    assert result.user_id == 1
    assert result.welcome == "Welcome Ann! You are logged in as Student."


def test_admin_and_faculty_login(gateway):
    host, port = gateway
    assert login(host, port, 1, "root@x.com", "rootpw").welcome.endswith("as Administrator.")
    res = login(host, port, 3, "smith@x.com", "fpw")
    assert res.user_id == 10
    assert res.welcome.endswith("as Faculty.")


@pytest.mark.parametrize(
    "role,email,password,status",
    [
        (2, "ann@x.com", "nope", LoginStatus.WRONG_PASS),
        (2, "ghost@x.com", "pw", LoginStatus.WRONG_USER),
        # right credentials, wrong table
        (3, "ann@x.com", "pw", LoginStatus.WRONG_USER),
        (2, "cy@x.com", "pw", LoginStatus.DEACTIVATED),
    ],
)
def test_failed_logins(gateway, role, email, password, status):
    host, port = gateway
    result = login(host, port, role, email, password)
    assert not result.ok
    assert result.status is status
    assert result.user_id is None


def test_invalid_role_gets_no_credential_prompt(gateway):
    with socket.create_connection(gateway, timeout=5) as sock:
        buf = b""
        while len(buf) < len(ROLE_PROMPT):
            buf += sock.recv(len(ROLE_PROMPT) - len(buf))
        sock.sendall(INT.pack(7))

        rest = b""
        while True:
            chunk = sock.recv(64)
            if not chunk:
                break
            rest += chunk

    assert rest == INT.pack(int(LoginStatus.INCORRECT_ROLE))


def test_client_helper_reports_invalid_role(gateway):
    assert login(*gateway, 0, "ann@x.com", "pw").status is LoginStatus.INCORRECT_ROLE


def test_session_stays_open_after_login(gateway):
    result, sock = login(*gateway, 2, "bob@x.com", "pw", keep_open=True)
    try:
        assert result.ok
        sock.settimeout(0.2)
        # server idles: nothing more is sent, connection is not closed
        with pytest.raises(socket.timeout):
            sock.recv(1)
    finally:
        sock.close()


def test_email_prompt_cannot_be_mistaken_for_a_status():
    assert EMAIL_PROMPT[:INT.size] != INT.pack(int(LoginStatus.INCORRECT_ROLE))


def test_client_rejects_unexpected_reply_to_role():
    listener = socket.create_server(("127.0.0.1", 0))

    def fake_gateway():
        conn, _ = listener.accept()
        with conn:
            conn.sendall(ROLE_PROMPT)
            conn.recv(INT.size)
            conn.sendall(INT.pack(99))

    t = threading.Thread(target=fake_gateway, daemon=True)
    t.start()
    try:
        with pytest.raises(ConnectionError):
            login(*listener.getsockname(), 2, "ann@x.com", "pw")
    finally:
        t.join(5)
        listener.close()
