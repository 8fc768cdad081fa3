"""统一异常体系

所有业务异常继承 ChartPackError，替代散落的 ValueError / RuntimeError。
CLI 层可据此输出友好提示，服务层可据此决定是否清理临时资源后再抛出。

错误一律终止当前构建，不做内部重试。
"""

from __future__ import annotations


class ChartPackError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(ChartPackError):
    """配置缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(ChartPackError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ResolutionError(ChartPackError):
    """包名未知 / 版本约束无法满足 / 依赖冲突"""

    code = "RESOLUTION_ERROR"


class DecompositionError(ChartPackError):
    """包数据流损坏或被截断"""

    code = "DECOMPOSITION_ERROR"


class ChartNotFoundError(ChartPackError):
    """包内不存在顶层 Chart.yaml"""

    code = "CHART_NOT_FOUND"


class PatchError(ChartPackError):
    """补丁解码或应用失败，始终携带出错文件的相对路径"""

    code = "PATCH_ERROR"

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class ManifestError(ChartPackError):
    """清单序列化、摘要计算或层查找失败"""

    code = "MANIFEST_ERROR"


class BuildCancelledError(ChartPackError):
    """调用方取消了解析或下载"""

    code = "CANCELLED"


class RegistryError(ChartPackError):
    """推送到 OCI 仓库失败"""

    code = "REGISTRY_ERROR"
