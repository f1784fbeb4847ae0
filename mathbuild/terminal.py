"""
Terminal helpers for the mathbuild CLI.
Provides colored output for stage results and ascii findings.
"""

import sys


class Colors:
    """ANSI color codes for terminal output."""
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    BG_RED = '\x1b[41m'
    RESET = '\033[0m'


def enable_colors():
    """Enable ANSI colors on Windows."""
    if sys.platform == 'win32':
        try:
            import ctypes
            kernel32 = ctypes.windll.kernel32
            kernel32.SetConsoleMode(kernel32.GetStdHandle(-11), 7)
        except (AttributeError, OSError):
            pass


def color_print(msg, color=Colors.RESET):
    enable_colors()
    print(f"{color}{msg}{Colors.RESET}")


def print_header(title: str):
    print(f"\n{Colors.CYAN}{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}{Colors.RESET}\n")


def print_success(msg: str):
    color_print(f"✅ {msg}", Colors.GREEN)


def print_warning(msg: str):
    color_print(f"⚠️  {msg}", Colors.YELLOW)


def print_error(msg: str):
    color_print(f"❌ {msg}", Colors.RED)


def format_finding(finding) -> str:
    """Format one non-ascii finding the way validate-ascii prints it."""
    prefix = '' if finding.inside_comment else Colors.BG_RED
    return (
        f"{prefix} file: {finding.filename} ln:{finding.ln} col:{finding.col} "
        f"inside comment: {str(finding.inside_comment).lower()} code: {finding.c} "
        f"character: {finding.character} {Colors.RESET}"
    )
