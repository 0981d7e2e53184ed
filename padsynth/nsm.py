"""Session-management (NSM) client speaking OSC over UDP."""

from __future__ import annotations

import logging
import os
import socket
import struct
import sys
import threading
from collections.abc import Callable, Sequence
from enum import IntEnum
from urllib.parse import urlsplit

_log = logging.getLogger(__name__)

NSM_API_VERSION_MAJOR = 1
NSM_API_VERSION_MINOR = 0

_ANNOUNCE_PATH = "/nsm/server/announce"

OscArg = str | int | float
Sender = Callable[[str, str, tuple], None]


class ReplyCode(IntEnum):
    ERR_OK = 0
    ERR_GENERAL = -1
    ERR_INCOMPATIBLE_API = -2
    ERR_BLACKLISTED = -3
    ERR_LAUNCH_FAILED = -4
    ERR_NO_SUCH_FILE = -5
    ERR_NO_SESSION_OPEN = -6
    ERR_UNSAVED_CHANGES = -7
    ERR_NOT_NOW = -8
    ERR_BAD_PROJECT = -9
    ERR_CREATE_FAILED = -10


_REPLY_MESSAGES = {
    ReplyCode.ERR_OK: "OK",
    ReplyCode.ERR_GENERAL: "ERR_GENERAL",
    ReplyCode.ERR_INCOMPATIBLE_API: "ERR_INCOMPATIBLE_API",
    ReplyCode.ERR_BLACKLISTED: "ERR_BLACKLISTED",
    ReplyCode.ERR_LAUNCH_FAILED: "ERR_LAUNCH_FAILED",
    ReplyCode.ERR_NO_SUCH_FILE: "ERR_NO_SUCH_FILE",
    ReplyCode.ERR_NO_SESSION_OPEN: "ERR_NO_SESSION_OPEN",
    ReplyCode.ERR_UNSAVED_CHANGES: "ERR_UNSAVED_CHANGES",
    ReplyCode.ERR_NOT_NOW: "ERR_NOT_NOW",
}


def reply_message(reply_code: int) -> str:
    """Text sent to the server for a reply code."""
    try:
        code = ReplyCode(reply_code)
    except ValueError:
        return "(UNKNOWN)"
    return _REPLY_MESSAGES.get(code, "(UNKNOWN)")


# OSC wire format

def _pad(data: bytes) -> bytes:
    return data + b"\x00" * (4 - len(data) % 4)


def _encode_message(path: str, types: str, args: Sequence[OscArg]) -> bytes:
    parts = [_pad(path.encode("utf-8")), _pad(("," + types).encode("ascii"))]
    for tag, arg in zip(types, args):
        if tag == "s":
            parts.append(_pad(str(arg).encode("utf-8")))
        elif tag == "i":
            parts.append(struct.pack(">i", int(arg)))
        elif tag == "f":
            parts.append(struct.pack(">f", float(arg)))
        else:
            raise ValueError(f"unsupported OSC type tag {tag!r}")
    return b"".join(parts)


def _read_string(data: bytes, offset: int) -> tuple[str, int]:
    end = data.index(b"\x00", offset)
    text = data[offset:end].decode("utf-8")
    return text, (end // 4 + 1) * 4


def _decode_message(data: bytes) -> tuple[str, list[OscArg]]:
    path, offset = _read_string(data, 0)
    if offset >= len(data):
        return path, []
    tags, offset = _read_string(data, offset)
    if not tags.startswith(","):
        raise ValueError("missing OSC type tag string")
    args: list[OscArg] = []
    for tag in tags[1:]:
        if tag == "s":
            text, offset = _read_string(data, offset)
            args.append(text)
        elif tag == "i":
            args.append(struct.unpack_from(">i", data, offset)[0])
            offset += 4
        elif tag == "f":
            args.append(struct.unpack_from(">f", data, offset)[0])
            offset += 4
        else:
            raise ValueError(f"unsupported OSC type tag {tag!r}")
    return path, args


def _type_tags(args: Sequence[OscArg]) -> str:
    tags = []
    for arg in args:
        if isinstance(arg, str):
            tags.append("s")
        elif isinstance(arg, bool):
            tags.append("?")
        elif isinstance(arg, int):
            tags.append("i")
        elif isinstance(arg, float):
            tags.append("f")
        else:
            tags.append("?")
    return "".join(tags)


class _UdpTransport:
    """UDP socket talking to the session server, with a receiving thread."""

    def __init__(self, nsm_url: str, handler: Callable[[str, list], object]) -> None:
        parts = urlsplit(nsm_url)
        if parts.scheme not in ("osc.udp", "osc") or not parts.hostname or not parts.port:
            raise ValueError(f"unsupported session manager URL: {nsm_url!r}")
        info = socket.getaddrinfo(parts.hostname, parts.port, type=socket.SOCK_DGRAM)
        family, _, _, _, self._address = info[0]
        self._socket = socket.socket(family, socket.SOCK_DGRAM)
        self._socket.bind(("", 0))
        self._socket.settimeout(0.1)
        self._handler = handler
        self._stopping = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="padsynth-nsm", daemon=True
        )
        self._thread.start()

    def send(self, path: str, types: str, args: tuple) -> None:
        self._socket.sendto(_encode_message(path, types, args), self._address)

    def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                data, _ = self._socket.recvfrom(65536)
            except socket.timeout:
                continue
            except OSError:
                break
            try:
                path, args = _decode_message(data)
            except (ValueError, UnicodeDecodeError, struct.error):
                _log.debug("ignoring malformed OSC packet")
                continue
            self._handler(path, args)

    def close(self) -> None:
        self._stopping.set()
        if self._thread is not threading.current_thread():
            self._thread.join()
        self._socket.close()


class NsmClient:
    """Client side of the session-management protocol."""

    SIGNALS = ("active", "open", "save", "loaded", "show", "hide")

    def __init__(self, nsm_url: str = "", sender: Sender | None = None) -> None:
        self._active = False
        self._dirty = False
        self._manager = ""
        self._capabilities = ""
        self._path_name = ""
        self._display_name = ""
        self._client_name = ""
        self._callbacks: dict[str, list[Callable[..., None]]] = {
            name: [] for name in self.SIGNALS
        }
        self._transport: _UdpTransport | None = None
        if sender is None and nsm_url:
            self._transport = _UdpTransport(nsm_url, self.dispatch)
            sender = self._transport.send
        self._sender = sender

    # accessors

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def manager(self) -> str:
        return self._manager

    @property
    def capabilities(self) -> str:
        return self._capabilities

    @property
    def path_name(self) -> str:
        return self._path_name

    @property
    def display_name(self) -> str:
        return self._display_name

    @property
    def client_name(self) -> str:
        return self._client_name

    # signals

    def connect(self, signal: str, callback: Callable[..., None]) -> None:
        """Call callback whenever signal is emitted."""
        if signal not in self._callbacks:
            raise ValueError(f"unknown signal: {signal!r}")
        self._callbacks[signal].append(callback)

    def _emit(self, signal: str, *args: object) -> None:
        for callback in list(self._callbacks[signal]):
            callback(*args)

    def _send(self, path: str, types: str, *args: OscArg) -> None:
        if self._sender is not None:
            self._sender(path, types, args)

    # session client methods

    def announce(self, app_name: str, capabilities: str) -> None:
        """Announce this client to the session server."""
        executable = os.path.basename(sys.argv[0] if sys.argv and sys.argv[0] else "")
        self._send(
            _ANNOUNCE_PATH,
            "sssiii",
            app_name,
            capabilities,
            executable,
            NSM_API_VERSION_MAJOR,
            NSM_API_VERSION_MINOR,
            os.getpid(),
        )

    def dirty(self, is_dirty: bool) -> None:
        """Report a change of the unsaved-changes state."""
        is_dirty = bool(is_dirty)
        if is_dirty == self._dirty:
            return
        self._dirty = is_dirty
        if self._active:
            self._send("/nsm/client/is_dirty" if is_dirty else "/nsm/client/is_clean", "")

    def visible(self, is_visible: bool) -> None:
        if self._active:
            self._send(
                "/nsm/client/gui_is_shown" if is_visible else "/nsm/client/gui_is_hidden",
                "",
            )

    def progress(self, percent: float) -> None:
        if self._active:
            self._send("/nsm/client/progress", "f", float(percent))

    def message(self, priority: int, mesg: str) -> None:
        if self._active:
            self._send("/nsm/client/message", "is", int(priority), mesg)

    # replies

    def open_reply(self, reply_code: int = ReplyCode.ERR_OK) -> None:
        self.reply("/nsm/client/open", reply_code)

    def save_reply(self, reply_code: int = ReplyCode.ERR_OK) -> None:
        self.reply("/nsm/client/save", reply_code)

    def reply(self, path: str, reply_code: int) -> None:
        """Answer a server request at path with a reply code."""
        text = reply_message(reply_code)
        if reply_code == ReplyCode.ERR_OK:
            self._send("/reply", "ss", path, text)
        else:
            self._send("/error", "sis", path, int(reply_code), text)

    # incoming messages

    def dispatch(self, path: str, args: Sequence[OscArg]) -> bool:
        """Handle one incoming server message; return whether it was accepted."""
        args = list(args)
        types = _type_tags(args)
        if path == "/error" and types == "sis":
            if args[0] != _ANNOUNCE_PATH:
                return False
            self.nsm_announce_error(args[2])
        elif path == "/reply" and types == "ssss":
            if args[0] != _ANNOUNCE_PATH:
                return False
            self.nsm_announce_reply(args[1], args[2], args[3])
        elif path == "/nsm/client/open" and types == "sss":
            self.nsm_open(args[0], args[1], args[2])
        elif types:
            return False
        elif path == "/nsm/client/save":
            self.nsm_save()
        elif path == "/nsm/client/session_is_loaded":
            self.nsm_loaded()
        elif path == "/nsm/client/show_optional_gui":
            self.nsm_show()
        elif path == "/nsm/client/hide_optional_gui":
            self.nsm_hide()
        else:
            return False
        return True

    def nsm_announce_error(self, mesg: str) -> None:
        self._active = False
        self._manager = ""
        self._capabilities = ""
        self._path_name = ""
        self._display_name = ""
        self._client_name = ""
        self._emit("active", False)
        _log.debug("nsm_announce_error: %s", mesg)

    def nsm_announce_reply(self, mesg: str, manager: str, capabilities: str) -> None:
        self._active = True
        self._manager = manager
        self._capabilities = capabilities
        self._emit("active", True)
        _log.debug("nsm_announce_reply: %s", mesg)

    def nsm_open(self, path_name: str, display_name: str, client_name: str) -> None:
        self._path_name = path_name
        self._display_name = display_name
        self._client_name = client_name
        self._log_session("nsm_open")
        self._emit("open")

    def nsm_save(self) -> None:
        self._log_session("nsm_save")
        self._emit("save")

    def nsm_loaded(self) -> None:
        self._log_session("nsm_loaded")
        self._emit("loaded")

    def nsm_show(self) -> None:
        self._log_session("nsm_show")
        self._emit("show")

    def nsm_hide(self) -> None:
        self._log_session("nsm_hide")
        self._emit("hide")

    def _log_session(self, what: str) -> None:
        _log.debug(
            '%s: path_name="%s" display_name="%s" client_name="%s"',
            what,
            self._path_name,
            self._display_name,
            self._client_name,
        )

    # lifetime

    def close(self) -> None:
        """Stop listening and release the socket."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            self._sender = None

    def __enter__(self) -> NsmClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()