"""
ADB 适配封装

每条命令都以 Popen 启动，并在后台线程中按截止时间 join：
超时则 kill 进程并抛出 AdbError，不做重试。

- devices()
- screencap() -> PNG bytes
- window_size() -> (w, h)
- tap / swipe / long_press
- input_text / keyevent
- start_app(pkg) / open_url(url)
"""
from __future__ import annotations

import re
import subprocess
from typing import List, Optional, Tuple

from ...core.errors import TransportError
from ...core.logger import logger
from ...core.thread_pool import run_with_deadline


class AdbError(TransportError):
    pass


# adb shell input text 需要转义的字符
_INPUT_TEXT_SPECIAL = re.compile(r"([\\\"'`$&|;<>()*?~#!\[\]{}])")


def escape_input_text(text: str) -> str:
    """转义 `adb shell input text` 参数，空格替换为 %s。"""
    return _INPUT_TEXT_SPECIAL.sub(r"\\\1", text).replace(" ", "%s")


class Adb:
    def __init__(self, adb_path: str = "adb", serial: str = "", timeout: float = 10.0) -> None:
        self.adb = adb_path
        self.serial = serial
        self.timeout = timeout
        self._log = logger.bind(module="Adb")

    def _base(self) -> List[str]:
        return [self.adb, "-s", self.serial] if self.serial else [self.adb]

    def _run(self, args: List[str], timeout: Optional[float] = None) -> Tuple[int, bytes, bytes]:
        cmd = [*self._base(), *args]
        limit = self.timeout if timeout is None else timeout
        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except FileNotFoundError as e:
            raise AdbError(f"找不到 ADB 可执行文件: {self.adb}") from e

        try:
            out, err = run_with_deadline(proc.communicate, timeout=limit)
        except TimeoutError as e:
            proc.kill()
            self._log.warning("ADB 命令超时: {} ({}s)", " ".join(args), limit)
            raise AdbError(f"ADB 命令超时 ({limit:.0f}s): {' '.join(args)}") from e
        return proc.returncode, out or b"", err or b""

    def _shell(self, *args: str, timeout: Optional[float] = None) -> str:
        code, out, err = self._run(["shell", *args], timeout=timeout)
        if code != 0:
            raise AdbError(err.decode(errors="ignore").strip() or f"adb shell 返回码 {code}")
        return out.decode(errors="ignore")

    def devices(self) -> List[str]:
        _, out, _ = self._run(["devices"])
        result = []
        for line in out.decode(errors="ignore").splitlines():
            line = line.strip()
            if not line or line.lower().startswith("list of devices"):
                continue
            parts = line.split()
            if len(parts) >= 2 and parts[1] == "device":
                result.append(parts[0])
        return result

    def screencap(self, timeout: Optional[float] = None) -> bytes:
        code, out, err = self._run(["exec-out", "screencap", "-p"], timeout=timeout)
        if code != 0 or not out:
            raise AdbError(err.decode(errors="ignore").strip() or "ADB 截图失败")
        return out

    def window_size(self) -> Tuple[int, int]:
        out = self._shell("wm", "size")
        # 优先 Override size
        sizes = re.findall(r"(\d+)x(\d+)", out)
        if not sizes:
            raise AdbError(f"无法解析 wm size 输出: {out.strip()}")
        w, h = sizes[-1]
        return int(w), int(h)

    def tap(self, x: int, y: int) -> None:
        self._shell("input", "tap", str(x), str(y))

    def swipe(self, x1: int, y1: int, x2: int, y2: int, dur_ms: int = 300) -> None:
        self._shell("input", "swipe", str(x1), str(y1), str(x2), str(y2), str(dur_ms))

    def long_press(self, x: int, y: int, dur_ms: int = 1000) -> None:
        # 起止点相同的 swipe 即长按
        self.swipe(x, y, x, y, dur_ms)

    def input_text(self, text: str) -> None:
        self._shell("input", "text", escape_input_text(text))

    def keyevent(self, *keycodes: str) -> None:
        self._shell("input", "keyevent", *keycodes)

    def keycombination(self, *keycodes: str) -> None:
        self._shell("input", "keycombination", *keycodes)

    def start_app(self, pkg: str) -> None:
        out = self._shell(
            "monkey", "-p", pkg, "-c", "android.intent.category.LAUNCHER", "1"
        )
        # monkey 返回码可能为 0 但未真正注入事件
        if "events injected" not in out.lower():
            raise AdbError(f"无法启动应用: {pkg}")

    def open_url(self, url: str) -> None:
        self._shell("am", "start", "-a", "android.intent.action.VIEW", "-d", url)
