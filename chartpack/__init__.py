"""chartpack - 将 APK 软件包中内嵌的 Helm chart 转换为 OCI 制品"""

__version__ = "0.1.0"
