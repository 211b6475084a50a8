import pytest

from samsynk.cli import parse_args, main


def test_defaults():
    args = parse_args([])
    assert args.tty == "/dev/ttyUSB0"
    assert args.port == 8080
    assert args.baud == 9600
    assert args.host == "127.0.0.1"
    assert args.slave == 1


def test_overrides():
    args = parse_args(["--tty", "/tmp/fake-tty", "--port", "9000", "--slave", "3"])
    assert (args.tty, args.port, args.slave) == ("/tmp/fake-tty", 9000, 3)


def test_bad_port_value():
    with pytest.raises(SystemExit):
        parse_args(["--port", "abc"])


def test_main_missing_device():
    with pytest.raises(SystemExit, match="Could not open port /nonexistent/tty"):
        main(["--tty", "/nonexistent/tty"])