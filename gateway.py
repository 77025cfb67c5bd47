"""
gateway.py — login handshake over TCP

Protocol (one connection per login):

    server: "Enter role (1-Admin, 2-Student, 3-Faculty): "
    client: 4-byte signed int (native byte order)
            -> not 1..3: server sends status -4 and closes, no credential prompt
    server: "Enter email: "        client: raw chunk
    server: "Enter password: "     client: raw chunk
    server: 4-byte status  1 / -1 wrong pass / -2 wrong user / -3 deactivated
            on success: 4-byte user id + one welcome line

After a successful login the connection just idles until the client hangs
up. The gateway never writes to the tables; logged-in clients work on the
shared files directly through the store.

Usage:
    python gateway.py
    (host, port and data directory come from config.Config / environment)
"""

from __future__ import annotations

import logging
import socket
import socketserver
import struct
from dataclasses import dataclass
from typing import Optional

from config import Config
from models.user import Role
from services.auth import LoginStatus, authenticate
from services.store import TableStore
from utils.errors import FileError

logger = logging.getLogger(__name__)

INT = struct.Struct("=i")

ROLE_PROMPT = b"Enter role (1-Admin, 2-Student, 3-Faculty): "
EMAIL_PROMPT = b"Enter email: "
PASSWORD_PROMPT = b"Enter password: "

MAX_EMAIL_LEN = 100
MAX_PASS_LEN = 64
WELCOME_BUF = 256


def _recv_exact(sock: socket.socket, size: int) -> Optional[bytes]:
    buf = b""
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            return None
        buf += chunk
    return buf


def _recv_text(sock: socket.socket, limit: int) -> Optional[str]:
    # one raw chunk, newline-agnostic
    chunk = sock.recv(limit)
    if not chunk:
        return None
    text = chunk.decode("utf-8", errors="replace")
    for sep in ("\r", "\n"):
        text = text.split(sep, 1)[0]
    return text


class GatewayHandler(socketserver.BaseRequestHandler):
    def send_status(self, status: LoginStatus) -> None:
        self.request.sendall(INT.pack(int(status)))

    def handle(self) -> None:
        store: TableStore = self.server.store
        peer = "%s:%s" % self.client_address[:2]

        self.request.sendall(ROLE_PROMPT)
        raw = _recv_exact(self.request, INT.size)
        if raw is None:
            logger.warning("gateway: %s disconnected before sending a role", peer)
            return

        (role_value,) = INT.unpack(raw)
        role = Role.parse(role_value)
        if role is None:
            logger.warning("gateway: %s sent invalid role %s", peer, role_value)
            self.send_status(LoginStatus.INCORRECT_ROLE)
            return

        self.request.sendall(EMAIL_PROMPT)
        email = _recv_text(self.request, MAX_EMAIL_LEN - 1)
        if email is None:
            return
        self.request.sendall(PASSWORD_PROMPT)
        password = _recv_text(self.request, MAX_PASS_LEN - 1)
        if password is None:
            return

        try:
            result = authenticate(store, role, email, password)
        except FileError as e:
            logger.error("gateway: cannot read %s table: %s", role.name.lower(), e, exc_info=True)
            self.send_status(LoginStatus.WRONG_USER)
            return

        self.send_status(result.status)
        if not result.ok:
            return

        self.request.sendall(INT.pack(result.user.id) + result.welcome.encode("utf-8"))
        logger.info("gateway: %s logged in as %s %s", peer, role.name.lower(), result.user.id)

        # idle until the client goes away
        while self.request.recv(1024):
            pass


class GatewayServer(socketserver.ForkingTCPServer):
    # one child process per connection
    allow_reuse_address = True

    def __init__(self, address, store: TableStore):
        self.store = store
        super().__init__(address, GatewayHandler)


class ThreadedGatewayServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address, store: TableStore):
        self.store = store
        super().__init__(address, GatewayHandler)


def make_server(store: TableStore, host: str, port: int, forking: bool = True):
    cls = GatewayServer if forking else ThreadedGatewayServer
    return cls((host, port), store)


# -----------------------------
# Client side of the handshake
# -----------------------------

@dataclass(frozen=True)
class LoginResult:
    status: LoginStatus
    user_id: Optional[int] = None
    welcome: str = ""

    @property
    def ok(self) -> bool:
        return self.status is LoginStatus.LOGIN_SUCCESS


def login(host: str, port: int, role: int, email: str, password: str, timeout: float = 10.0,
          keep_open: bool = False):
    """Run the handshake. Returns LoginResult, or (LoginResult, socket) with keep_open=True."""
    sock = socket.create_connection((host, port), timeout=timeout)
    try:
        if _recv_exact(sock, len(ROLE_PROMPT)) is None:
            raise ConnectionError("gateway closed before the role prompt")
        sock.sendall(INT.pack(int(role)))

        # Next comes either the email prompt or, for an invalid role, a bare
        # 4-byte status. Tell them apart by the prompt's own first bytes.
        head = _recv_exact(sock, INT.size)
        if head is None:
            raise ConnectionError("gateway closed after the role")
        if head != EMAIL_PROMPT[:INT.size]:
            status = INT.unpack(head)[0]
            if status != LoginStatus.INCORRECT_ROLE:
                raise ConnectionError(f"unexpected reply to the role: {head!r}")
            return _finish(sock, LoginResult(LoginStatus.INCORRECT_ROLE), keep_open=False)
        if _recv_exact(sock, len(EMAIL_PROMPT) - INT.size) is None:
            raise ConnectionError("gateway closed during the email prompt")

        sock.sendall(email.encode("utf-8") + b"\n")
        if _recv_exact(sock, len(PASSWORD_PROMPT)) is None:
            raise ConnectionError("gateway closed during the password prompt")
        sock.sendall(password.encode("utf-8") + b"\n")

        raw = _recv_exact(sock, INT.size)
        if raw is None:
            raise ConnectionError("gateway closed before the login status")
        status = LoginStatus(INT.unpack(raw)[0])
        if status is not LoginStatus.LOGIN_SUCCESS:
            return _finish(sock, LoginResult(status), keep_open=False)

        user_id = INT.unpack(_recv_exact(sock, INT.size) or b"\0\0\0\0")[0]
        welcome = b""
        while not welcome.endswith(b"\n") and len(welcome) < WELCOME_BUF:
            chunk = sock.recv(WELCOME_BUF - len(welcome))
            if not chunk:
                break
            welcome += chunk
        result = LoginResult(status, user_id, welcome.decode("utf-8", errors="replace").strip())
        return _finish(sock, result, keep_open)
    except BaseException:
        sock.close()
        raise


def _finish(sock: socket.socket, result: LoginResult, keep_open: bool):
    if keep_open:
        return result, sock
    sock.close()
    return result


def main() -> None:
    logging.basicConfig(level=Config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    store = TableStore.from_config(Config)
    store.ensure_tables()
    with make_server(store, Config.GATEWAY_HOST, Config.GATEWAY_PORT) as server:
        print(f"Gateway listening on {Config.GATEWAY_HOST}:{Config.GATEWAY_PORT} (data: {store.data_dir})")
        server.serve_forever()


if __name__ == "__main__":
    main()
