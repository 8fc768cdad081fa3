"""CLI: chart 拉取 / 查看 / 构建 / 发布命令"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any

import click

from chartpack.cli import _parse_kv_pairs, _svc
from chartpack.core.exceptions import ChartPackError, ValidationError
from chartpack.utils.yaml_io import load_yaml


def register(group: click.Group) -> None:
    group.add_command(fetch)
    group.add_command(inspect_package)
    group.add_command(build)
    group.add_command(push)


def _load_patches(path: str | None) -> dict[str, bytes]:
    """读取补丁清单 {相对路径: [操作...]}，每项编码为 JSON 字节"""
    if not path:
        return {}
    data = load_yaml(path)
    patches: dict[str, bytes] = {}
    for rel, ops in data.items():
        if not isinstance(ops, list):
            raise ValidationError(f"{path}: patch for {rel} must be a list of operations")
        patches[str(rel)] = json.dumps(ops).encode("utf-8")
    return patches


def _error(exc: ChartPackError) -> click.ClickException:
    return click.ClickException(f"[{exc.code}] {exc}")


_package_options = [
    click.argument("name"),
    click.option("--version", default=None, help="版本约束（默认取最新版本）"),
    click.option("--arch", default=None, help="目标架构（默认取配置或 aarch64）"),
]


def _with_package_options(func: Any) -> Any:
    for opt in reversed(_package_options):
        func = opt(func)
    return func


@click.command()
@_with_package_options
@click.option("--output", "-o", default=None, help="保存路径（默认临时文件）")
def fetch(name: str, version: str | None, arch: str | None, output: str | None) -> None:
    """解析并下载软件包"""
    svc = _svc().charts
    try:
        fetched = svc.fetch(svc.query(name, version, arch))
    except ChartPackError as exc:
        raise _error(exc) from exc
    path = fetched.path
    if output:
        dest = Path(output)
        dest.parent.mkdir(parents=True, exist_ok=True)
        path = Path(shutil.move(str(fetched.path), dest))
    click.echo(f"就绪: {fetched.package} -> {path}")


@click.command(name="inspect")
@click.argument("package_file", type=click.Path(exists=True, dir_okay=False))
def inspect_package(package_file: str) -> None:
    """查看本地软件包中的 chart 元数据"""
    from chartpack.core.chart.builder import ChartBuilder
    try:
        with ChartBuilder(package_file) as builder:
            meta = builder.metadata()
    except ChartPackError as exc:
        raise _error(exc) from exc
    click.echo(json.dumps(meta.to_dict(), indent=2, ensure_ascii=False))


@click.command()
@click.argument("source")
@click.option("--version", default=None, help="版本约束（SOURCE 为包名时有效）")
@click.option("--arch", default=None, help="目标架构（SOURCE 为包名时有效）")
@click.option("--patches", default=None, help="补丁清单 YAML/JSON 文件")
@click.option("--image", "images", multiple=True, help="镜像引用 id=ref，可多次指定")
def build(
    source: str, version: str | None, arch: str | None,
    patches: str | None, images: tuple[str, ...],
) -> None:
    """构建制品并输出清单（SOURCE 为本地 apk 文件或包名）"""
    from chartpack.core.chart.builder import ChartBuilder
    try:
        patch_map = _load_patches(patches)
        image_map = _parse_kv_pairs(images)
        if Path(source).is_file():
            with ChartBuilder(source) as builder:
                artifact = builder.build(patch_map, image_map)
        else:
            svc = _svc().charts
            artifact = svc.build(
                svc.query(source, version, arch), patches=patch_map, images=image_map,
            )
    except ChartPackError as exc:
        raise _error(exc) from exc
    click.echo(artifact.raw_manifest().decode("utf-8"))
    click.echo(f"digest: {artifact.digest()}", err=True)


@click.command()
@_with_package_options
@click.option("--repository", required=True, help="目标 OCI 仓库，如 registry.example.com/charts/app")
@click.option("--patches", default=None, help="补丁清单 YAML/JSON 文件")
@click.option("--image", "images", multiple=True, help="镜像引用 id=ref，可多次指定")
def push(
    name: str, version: str | None, arch: str | None,
    repository: str, patches: str | None, images: tuple[str, ...],
) -> None:
    """构建并按摘要推送到 OCI 仓库"""
    from chartpack.services.chart_service import PublishRequest
    try:
        result = _svc().charts.publish(PublishRequest(
            repository=repository,
            package_name=name,
            package_version=version,
            package_arch=arch,
            patches=_load_patches(patches),
            images=_parse_kv_pairs(images),
        ))
    except ChartPackError as exc:
        raise _error(exc) from exc
    click.echo(json.dumps({
        "id": result.id,
        "digest": result.digest,
        "name": result.name,
        "version": result.version,
    }, indent=2))
