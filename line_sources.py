"""
Line sources: every function here yields text lines until its input closes.

Requires pyserial for the serial source.
"""
from __future__ import annotations

import logging
import socket
import sys
import time
from typing import Iterator, List, Optional, Sequence, Tuple

import serial
import serial.tools.list_ports

logger = logging.getLogger(__name__)

BAUD = 115200
TIMEOUT = 2  # seconds

# USB bridges commonly found on boards that print measurements
KNOWN_VID_PID = {
    (0x2341, 0x804E),  # Arduino MKR1010
    (0x2341, 0x0043),  # Arduino Uno (Arduino LLC)
    (0x2341, 0x0001),  # Arduino Uno (old)
    (0x2A03, 0x0043),  # Genuino/Arduino
    (0x1A86, 0x7523),  # CH340/CH341 (clones)
    (0x10C4, 0xEA60),  # CP210x
    (0x0403, 0x6001),  # FTDI FT232
}
_KNOWN_VENDOR_WORDS = ["arduino", "genuino", "ftdi", "wch", "silicon labs", "cp210", "ch340", "ch341"]


# ---------- Files and stdin ----------
def iter_stdin_lines() -> Iterator[str]:
    logger.info("reading stdin")
    for line in sys.stdin:
        yield line


def iter_file_lines(paths: Sequence[str]) -> Iterator[str]:
    """Lines of each file in turn. '-' stands for stdin."""
    for path in paths:
        if path == "-":
            yield from iter_stdin_lines()
            continue
        logger.info("reading %s", path)
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            yield from f


# ---------- Serial ----------
def list_serial_ports() -> List[Tuple[str, str]]:
    """List of (device, description)."""
    return [(p.device, p.description) for p in serial.tools.list_ports.comports()]


def auto_find_serial_port() -> Optional[str]:
    ports = serial.tools.list_ports.comports()
    # 1) known VID/PID
    for p in ports:
        if p.vid is not None and p.pid is not None and (p.vid, p.pid) in KNOWN_VID_PID:
            return p.device
    # 2) manufacturer/product strings
    for p in ports:
        info = f"{p.manufacturer or ''} {p.product or ''}".lower()
        if any(k in info for k in _KNOWN_VENDOR_WORDS):
            return p.device
    # 3) last resort: first USB/ACM/COM device
    for p in ports:
        if any(s in p.device.lower() for s in ["usb", "acm", "com"]):
            return p.device
    return None


def open_serial(device: str, baud: int = BAUD, timeout: float = TIMEOUT) -> serial.Serial:
    ser = serial.Serial(device, baudrate=baud, timeout=timeout)
    # let the line settle before discarding whatever was buffered
    time.sleep(0.2)
    ser.reset_input_buffer()
    ser.reset_output_buffer()
    return ser


def iter_serial_lines(device: str, baud: int = BAUD, timeout: float = TIMEOUT) -> Iterator[str]:
    """
    Lines read from a serial port. A read timeout just means the device is
    quiet; the stream ends when the port goes away.
    """
    if device == "auto":
        found = auto_find_serial_port()
        if found is None:
            raise OSError("no serial port detected; pass the device name explicitly")
        device = found
    ser = open_serial(device, baud=baud, timeout=timeout)
    logger.info("reading serial port %s at %d baud", device, baud)
    try:
        while True:
            try:
                raw = ser.readline()
            except serial.SerialException as e:
                logger.info("serial port %s closed: %s", device, e)
                return
            if not raw:
                continue
            yield raw.decode("utf-8", errors="ignore")
    finally:
        ser.close()


# ---------- TCP ----------
def iter_tcp_lines(port: int, host: str = "127.0.0.1") -> Iterator[str]:
    """Accept a single client and yield its lines until it disconnects."""
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        srv.bind((host, int(port)))
        srv.listen(1)
        logger.info("tcp server listening on %s:%d", host, port)
        conn, addr = srv.accept()
    finally:
        srv.close()
    logger.info("tcp client connected from %s:%d", *addr[:2])
    buf = ""
    try:
        while True:
            data = conn.recv(4096)
            if not data:
                break
            buf += data.decode("utf-8", errors="ignore")
            while "\n" in buf:
                line, buf = buf.split("\n", 1)
                yield line
        if buf:
            yield buf
    finally:
        conn.close()
        logger.info("tcp client disconnected")
