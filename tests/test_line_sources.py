from __future__ import annotations

import socket
import tempfile
import threading
import time
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock, patch

import serial

import line_sources
from line_sources import auto_find_serial_port, iter_file_lines, iter_serial_lines, iter_tcp_lines


def _port(device: str, vid=None, pid=None, manufacturer=None, product=None, description="") -> SimpleNamespace:
    return SimpleNamespace(device=device, vid=vid, pid=pid, manufacturer=manufacturer,
                           product=product, description=description)


class TestFileLines(unittest.TestCase):
    def test_files_are_read_in_order(self) -> None:
        temp_dir = Path(tempfile.mkdtemp(prefix="feedplot_lines_test_"))
        first = temp_dir / "a.txt"
        second = temp_dir / "b.txt"
        first.write_text("1 2\n3 4\n", encoding="utf-8")
        second.write_text("replot\n", encoding="utf-8")
        self.assertEqual(list(iter_file_lines([str(first), str(second)])), ["1 2\n", "3 4\n", "replot\n"])

    def test_dash_reads_stdin(self) -> None:
        with patch.object(line_sources, "iter_stdin_lines", return_value=iter(["5\n"])):
            self.assertEqual(list(iter_file_lines(["-"])), ["5\n"])


class TestSerialLines(unittest.TestCase):
    def test_auto_find_prefers_known_vid_pid(self) -> None:
        ports = [
            _port("/dev/ttyS0"),
            _port("/dev/ttyUSB3", manufacturer="FTDI"),
            _port("/dev/ttyACM0", vid=0x2341, pid=0x0043),
        ]
        with patch("serial.tools.list_ports.comports", return_value=ports):
            self.assertEqual(auto_find_serial_port(), "/dev/ttyACM0")

    def test_auto_find_falls_back_to_names(self) -> None:
        with patch("serial.tools.list_ports.comports", return_value=[_port("/dev/ttyS0"), _port("/dev/ttyUSB1")]):
            self.assertEqual(auto_find_serial_port(), "/dev/ttyUSB1")
        with patch("serial.tools.list_ports.comports", return_value=[_port("/dev/ttyS0")]):
            self.assertIsNone(auto_find_serial_port())

    def test_serial_lines_skip_timeouts_and_end_on_error(self) -> None:
        fake = Mock()
        fake.readline.side_effect = [b"1 2\r\n", b"", b"3 4\n", serial.SerialException("unplugged")]
        with patch("line_sources.open_serial", return_value=fake) as open_mock:
            lines = list(iter_serial_lines("/dev/ttyUSB0", baud=9600))
        open_mock.assert_called_once_with("/dev/ttyUSB0", baud=9600, timeout=line_sources.TIMEOUT)
        self.assertEqual(lines, ["1 2\r\n", "3 4\n"])
        fake.close.assert_called_once()

    def test_auto_without_ports_fails(self) -> None:
        with patch("line_sources.auto_find_serial_port", return_value=None):
            with self.assertRaises(OSError):
                list(iter_serial_lines("auto"))


class TestTcpLines(unittest.TestCase):
    def test_single_client_lines(self) -> None:
        spare = socket.socket()
        spare.bind(("127.0.0.1", 0))
        port = spare.getsockname()[1]
        spare.close()

        def client() -> None:
            for _ in range(100):
                try:
                    conn = socket.create_connection(("127.0.0.1", port))
                    break
                except ConnectionRefusedError:
                    time.sleep(0.02)
            else:
                return
            with conn:
                conn.sendall(b"1 2\n3 ")
                conn.sendall(b"4\nreplot")

        sender = threading.Thread(target=client, daemon=True)
        sender.start()
        lines = list(iter_tcp_lines(port))
        sender.join(5.0)
        self.assertEqual(lines, ["1 2", "3 4", "replot"])


if __name__ == "__main__":
    unittest.main()
