"""
异常定义

步骤失败不抛异常，而是以 StepResult(status=FAIL) 作为值返回；
这里只定义跨越文件 / 进程边界的错误。
"""
from __future__ import annotations


class MirrorKitError(RuntimeError):
    pass


class ScenarioParseError(MirrorKitError):
    """场景文件无法读取或结构不合法（仅中止该文件）。"""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class TransportError(MirrorKitError):
    """输入 / 截图后端不可达或超时。在适配器边界转为错误字符串，不重试。"""


class StaleCompiledArtifact(MirrorKitError):
    """编译产物与源文件 / 设备不再匹配。"""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class UnknownTargetError(MirrorKitError):
    pass


class ScenarioResolveError(MirrorKitError):
    """命令行参数无法解析为场景文件（不存在 / 有歧义 / glob 无匹配）。"""
