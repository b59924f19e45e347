# tests/utils/test_command_simulator.py
import random
from datetime import datetime

import pytest

from src.utils.command_simulator import (
    COMMAND_NOT_FOUND_EXIT_CODE, HELP_TEXT, PACKAGE_NOTICE, simulate_command,
)

NOW = datetime(2024, 3, 5, 14, 7, 9)


def run(command, cwd="/root"):
    return simulate_command(command, cwd, rng=random.Random(0), now=NOW)


@pytest.mark.parametrize("command, expected", [
    ("pwd", "/root"),
    ("whoami", "root"),
    ("clear", ""),
    ("help", HELP_TEXT),
    ("date", "Tue Mar 05 14:07:09 2024"),
])
def test_exact_commands(command, expected):
    result = run(command)
    assert result.output == expected
    assert result.exit_code == 0

def test_exact_match_ignores_case_and_surrounding_whitespace():
    assert run("  WHOAMI ").output == "root"

def test_ls_variants_share_listing():
    assert run("ls").output == run("ls -la").output
    assert ".bashrc" in run("ls").output

@pytest.mark.parametrize("command, header", [
    ("free -h", "total"),
    ("df -h", "Filesystem"),
    ("ps aux", "USER"),
    ("top", "top - 14:07:09"),
    ("uptime", "load average"),
])
def test_system_commands(command, header):
    result = run(command)
    assert header in result.output
    assert result.exit_code == 0

def test_pwd_uses_working_directory():
    assert run("pwd", cwd="/var/www").output == "/var/www"

def test_cat_os_release():
    result = run("cat /etc/os-release")
    assert 'NAME="Ubuntu"' in result.output
    assert result.exit_code == 0

def test_cat_missing_file():
    result = run("cat notes.txt")
    assert result.output == "cat: notes.txt: No such file or directory"
    assert result.exit_code == 1

def test_echo_keeps_argument():
    assert run("echo hello   world").output == "hello   world"

@pytest.mark.parametrize("command, expected", [
    ("mkdir projects", "Directory 'projects' created"),
    ("touch app.py", "File 'app.py' created"),
])
def test_file_commands(command, expected):
    assert run(command).output == expected

@pytest.mark.parametrize("command", ["apt update", "sudo apt install nginx", "pip install flask"])
def test_package_commands(command):
    result = run(command)
    assert result.output == f"Simulated package operation: {command}\n{PACKAGE_NOTICE}"
    assert result.exit_code == 0

def test_unknown_command():
    result = run("nosuchcmd --flag")
    assert result.output == "bash: nosuchcmd --flag: command not found"
    assert result.exit_code == COMMAND_NOT_FOUND_EXIT_CODE == 127

def test_prefix_rules_are_case_sensitive():
    """접두사 규칙은 대소문자를 구분하므로 'CAT x'는 알 수 없는 명령입니다."""
    assert run("CAT /etc/os-release").exit_code == 127

def test_exact_match_tolerates_leading_spaces_but_prefix_rules_do_not():
    """정확히 일치하는 명령만 공백을 무시하고, 접두사/기본 규칙은 입력 원문 그대로 비교합니다."""
    assert run("   pwd").output == "/root"

    result = run("  echo hi")
    assert result.output == "bash:   echo hi: command not found"
    assert result.exit_code == 127

def test_echo_keeps_trailing_spaces():
    assert run("echo hi  ").output == "hi  "
