"""
Terminal colors and message prefixes used by :mod:`kubestrap.util.logger`.
"""

_RESET = '\033[0m'


def _paint(code):
    def painter(text):
        return f'\033[{code}m{text}{_RESET}'
    painter.__name__ = f'color_{code}'
    return painter


bold = _paint('1')
red = _paint('91')
green = _paint('92')
yellow = _paint('93')
grey = _paint('90')


def bad(text):
    """prefix for errors"""
    return f'[-] {text}'


def info(text):
    """prefix for warnings and notes"""
    return f'[!] {text}'


def run(text):
    """prefix for progress messages"""
    return f'[~] {text}'


def good(text):
    """prefix for successes"""
    return f'[+] {text}'


def que(text):
    """prefix for questions"""
    return f'[?] {text}'
