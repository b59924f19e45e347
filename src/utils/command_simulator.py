# src/utils/command_simulator.py
"""
웹 터미널용 가짜 명령 실행기.

실제 프로세스를 실행하지 않고, 입력 문자열을 미리 작성된 출력으로 변환합니다.
규칙은 다음 순서로 평가됩니다.
  1. 정확히 일치하는 명령 (앞뒤 공백과 대소문자 무시)
  2. 접두사 규칙 (cat, echo, mkdir, touch). 이후 규칙은 입력 원문 그대로 비교합니다.
  3. 부분 문자열 규칙 (install, update)
  4. 기본값: command not found (exit code 127)
"""
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

DEFAULT_WORKING_DIRECTORY = "/root"
COMMAND_NOT_FOUND_EXIT_CODE = 127

OS_RELEASE = """NAME="Ubuntu"
VERSION="22.04.3 LTS (Jammy Jellyfish)"
ID=ubuntu
ID_LIKE=debian
PRETTY_NAME="Ubuntu 22.04.3 LTS"
VERSION_ID="22.04"
HOME_URL="https://www.ubuntu.com/"
SUPPORT_URL="https://help.ubuntu.com/"
BUG_REPORT_URL="https://bugs.launchpad.net/ubuntu/"
PRIVACY_POLICY_URL="https://www.ubuntu.com/legal/terms-and-policies/privacy-policy"
VERSION_CODENAME=jammy
UBUNTU_CODENAME=jammy"""

HELP_TEXT = """Available commands:
Basic: ls, pwd, whoami, date, uptime, clear
System: free -h, df -h, ps aux, top
Files: cat, touch, mkdir, echo
Package: apt update, apt install
Note: This is a simulated environment. Some commands may have limited functionality."""

PACKAGE_NOTICE = "This is a demo environment. Package management is simulated."


@dataclass(frozen=True)
class CommandResult:
    output: str
    exit_code: int = 0


@dataclass(frozen=True)
class CommandContext:
    command: str
    working_directory: str
    rng: random.Random
    now: datetime


# --- 정확히 일치하는 명령 ---

def _ls(ctx: CommandContext) -> CommandResult:
    today = ctx.now.strftime("%a %b %d %Y")
    return CommandResult(
        "total 48\n"
        f"drwx------ 1 root root 4096 {today} .\n"
        f"drwxr-xr-x 1 root root 4096 {today} ..\n"
        "-rw-r--r-- 1 root root  571 Apr 10  2021 .bashrc\n"
        "-rw-r--r-- 1 root root  161 Jul  9  2019 .profile\n"
        f"drwxr-xr-x 2 root root 4096 {today} .ssh\n"
        f"-rw-r--r-- 1 root root 1024 {today} .vimrc"
    )


def _pwd(ctx: CommandContext) -> CommandResult:
    return CommandResult(ctx.working_directory)


def _whoami(ctx: CommandContext) -> CommandResult:
    return CommandResult("root")


def _date(ctx: CommandContext) -> CommandResult:
    return CommandResult(ctx.now.strftime("%a %b %d %H:%M:%S %Y"))


def _uptime(ctx: CommandContext) -> CommandResult:
    rng = ctx.rng
    seconds = rng.randrange(86400)
    hours, minutes = seconds // 3600, (seconds % 3600) // 60
    return CommandResult(
        f"{hours}:{minutes:02d} up {hours}h {minutes}m, 1 user, "
        f"load average: 0.{rng.randrange(50)}, 0.{rng.randrange(30)}, 0.{rng.randrange(20)}"
    )


def _free(ctx: CommandContext) -> CommandResult:
    rng = ctx.rng
    return CommandResult(
        "              total        used        free      shared  buff/cache   available\n"
        f"Mem:           2.0G        {rng.randrange(200, 1000)}M        1.{rng.randrange(5)}G         12M"
        f"        {rng.randrange(200, 600)}M        1.{rng.randrange(5)}G\n"
        "Swap:          1.0G          0B        1.0G"
    )


def _df(ctx: CommandContext) -> CommandResult:
    rng = ctx.rng
    used = rng.randrange(2, 12)
    return CommandResult(
        "Filesystem      Size  Used Avail Use% Mounted on\n"
        f"/dev/sda1        20G  {used}.{rng.randrange(10)}G   {20 - used}G  {used * 100 // 20}% /\n"
        "tmpfs           1.0G     0  1.0G   0% /dev/shm\n"
        "tmpfs           5.0M     0  5.0M   0% /run/lock"
    )


def _ps(ctx: CommandContext) -> CommandResult:
    start = ctx.now.strftime("%H:%M")
    return CommandResult(
        "USER       PID %CPU %MEM    VSZ   RSS TTY      STAT START   TIME COMMAND\n"
        f"root         1  0.0  0.1  18236  3152 ?        Ss   {start}   0:00 /bin/bash\n"
        f"root        15  0.0  0.1  34400  2896 ?        R    {start}   0:00 ps aux"
    )


def _top(ctx: CommandContext) -> CommandResult:
    rng = ctx.rng
    return CommandResult(
        f"top - {ctx.now.strftime('%H:%M:%S')} up  2:15,  1 user,  load average: 0.08, 0.03, 0.05\n"
        "Tasks:   2 total,   1 running,   1 sleeping,   0 stopped,   0 zombie\n"
        f"%Cpu(s):  {rng.randrange(20)}.0 us,  {rng.randrange(10)}.0 sy,  0.0 ni, {rng.randrange(70, 90)}.0 id,"
        "  0.0 wa,  0.0 hi,  0.0 si,  0.0 st\n"
        f"MiB Mem :   2048.0 total,   {rng.randrange(1000, 1800)}.0 free,    {rng.randrange(200, 600)}.0 used,"
        f"    {rng.randrange(200, 600)}.0 buff/cache\n"
        f"MiB Swap:   1024.0 total,   1024.0 free,      0.0 used.   {rng.randrange(1200, 1800)}.0 avail Mem\n"
        "\n"
        "  PID USER      PR  NI    VIRT    RES    SHR S  %CPU  %MEM     TIME+ COMMAND\n"
        "    1 root      20   0   18236   3152   2688 S   0.0   0.2   0:00.01 bash"
    )


def _clear(ctx: CommandContext) -> CommandResult:
    return CommandResult("")


def _help(ctx: CommandContext) -> CommandResult:
    return CommandResult(HELP_TEXT)


EXACT_COMMANDS: Dict[str, Callable[[CommandContext], CommandResult]] = {
    "ls": _ls,
    "ls -la": _ls,
    "pwd": _pwd,
    "whoami": _whoami,
    "date": _date,
    "uptime": _uptime,
    "free -h": _free,
    "df -h": _df,
    "ps aux": _ps,
    "top": _top,
    "clear": _clear,
    "help": _help,
}


# --- 접두사 규칙 ---

def _cat(ctx: CommandContext, argument: str) -> CommandResult:
    path = argument.strip()
    if path == "/etc/os-release":
        return CommandResult(OS_RELEASE)
    return CommandResult(f"cat: {path}: No such file or directory", 1)


def _echo(ctx: CommandContext, argument: str) -> CommandResult:
    # 인자를 그대로 출력 (공백 유지)
    return CommandResult(argument)


def _mkdir(ctx: CommandContext, argument: str) -> CommandResult:
    return CommandResult(f"Directory '{argument.strip()}' created")


def _touch(ctx: CommandContext, argument: str) -> CommandResult:
    return CommandResult(f"File '{argument.strip()}' created")


PREFIX_RULES: List[Tuple[str, Callable[[CommandContext, str], CommandResult]]] = [
    ("cat ", _cat),
    ("echo ", _echo),
    ("mkdir ", _mkdir),
    ("touch ", _touch),
]

SUBSTRING_RULES: Tuple[str, ...] = ("install", "update")


def simulate_command(
    command: str,
    working_directory: str = DEFAULT_WORKING_DIRECTORY,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> CommandResult:
    """
    명령 문자열에 대응하는 가짜 출력과 종료 코드를 반환합니다.

    Args:
        command: 사용자가 입력한 명령 한 줄.
        working_directory: 현재 작업 디렉터리. pwd 출력에 사용됩니다.
        rng: uptime, free, df, top 출력의 수치를 생성할 난수 생성기. 테스트에서 고정할 수 있습니다.
        now: date, ls 등에 사용할 현재 시각.

    Returns:
        CommandResult(output, exit_code). 실패한 명령도 예외 없이 exit_code로만 표현합니다.
    """
    ctx = CommandContext(
        command=command,
        working_directory=working_directory or DEFAULT_WORKING_DIRECTORY,
        rng=rng or random.Random(),
        now=now or datetime.now(),
    )

    exact = EXACT_COMMANDS.get(command.strip().lower())
    if exact:
        return exact(ctx)

    for prefix, rule in PREFIX_RULES:
        if command.startswith(prefix):
            return rule(ctx, command[len(prefix):])

    if any(keyword in command for keyword in SUBSTRING_RULES):
        return CommandResult(f"Simulated package operation: {command}\n{PACKAGE_NOTICE}")

    return CommandResult(f"bash: {command}: command not found", COMMAND_NOT_FOUND_EXIT_CODE)
