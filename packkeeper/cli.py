"""
CLI 模块

命令行接口实现。
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import click
import toml
import yaml
from loguru import logger

from packkeeper import __version__
from packkeeper.exceptions import ConfigParseError, PackKeeperError
from packkeeper.logger import setup_logger
from packkeeper.models import LauncherConfig, UpdateInfo, ValidationResult
from packkeeper.orchestrator import LauncherOrchestrator
from packkeeper.services import VersionComparator


def load_config(config_path: Optional[str]) -> LauncherConfig:
    """
    加载配置文件

    Raises:
        ConfigParseError: 文件无法读取或解析
        ConfigValidationError: 配置值不合法
    """
    if not config_path:
        return LauncherConfig.from_dict({})

    path = Path(config_path)
    if not path.exists():
        raise ConfigParseError(f"配置文件不存在: {config_path}")

    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
        if suffix == ".toml":
            data = toml.loads(text)
        elif suffix == ".json":
            data = json.loads(text)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            raise ConfigParseError(f"不支持的配置文件格式: {suffix}")
    except (OSError, ValueError, toml.TomlDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(f"配置文件解析失败: {e}", context={"path": str(path)}) from e

    return LauncherConfig.from_dict(data)


def run(coro_factory):
    """运行异步任务，并把 PackKeeper 错误转换为 click 错误"""
    try:
        return asyncio.run(coro_factory())
    except PackKeeperError as e:
        logger.error(f"{e.kind}: {e}")
        raise click.ClickException(str(e))


def _print_update(info: UpdateInfo):
    click.echo(f"当前版本: {info.current_version} ({info.platform})")
    click.echo(f"最新版本: {info.latest_version}{' (预发布)' if info.is_prerelease else ''}")
    click.echo(f"有更新: {'是' if info.has_update else '否'}")
    if info.download_url:
        click.echo(f"下载地址: {info.download_url}")
    if info.release_notes:
        click.echo("")
        click.echo(info.release_notes)


def _print_validation(result: ValidationResult):
    manifest = result.manifest
    loader = manifest.primary_loader
    click.echo(f"整合包: {manifest.name} {manifest.version} (作者: {manifest.author or '未知'})")
    click.echo(
        f"Minecraft {manifest.minecraft_version}"
        + (f" / {loader[0]} {loader[1]}" if loader else "")
    )
    click.echo(f"声明模组: {len(manifest.files)}")
    click.echo(f"没有下载地址: {len(result.mods_without_url)}")
    click.echo(f"overrides 中已包含: {len(result.mods_in_overrides)}")
    for error in result.metadata_errors:
        click.echo(f"  ! {error.message}")
    missing = result.missing_mods
    if missing:
        click.echo("缺失的模组（需要手动处理）:")
        for mod in missing:
            name = mod.file_name or f"文件 {mod.id}"
            link = f" - {mod.website_url}" if mod.website_url else ""
            click.echo(f"  - {name} [{mod.file_status.label}]{link}")


@click.group()
@click.option(
    "-c", "--config", "config_path", type=click.Path(), help="配置文件 (toml/json/yaml)"
)
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], debug: bool):
    """PackKeeper - Minecraft 整合包启动器核心"""
    try:
        config = load_config(config_path)
    except PackKeeperError as e:
        raise click.ClickException(str(e))

    setup_logger(
        level="DEBUG" if debug else None,
        log_file=config.paths.logs_dir / "packkeeper.log",
    )
    if debug:
        logger.debug("调试模式已启用")
    ctx.obj = config


@main.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def validate(config: LauncherConfig, archive: str):
    """校验整合包归档"""

    async def _run():
        async with LauncherOrchestrator(config) as orchestrator:
            return await orchestrator.validate_archive(archive)

    result = run(_run)
    _print_validation(result)
    if not result.can_continue:
        click.get_current_context().exit(1)


@main.command("check-update")
@click.pass_obj
def check_update(config: LauncherConfig):
    """检查启动器更新"""

    async def _run():
        async with LauncherOrchestrator(config) as orchestrator:
            return await orchestrator.check_for_updates()

    _print_update(run(_run))


@main.command("cached-update")
@click.pass_obj
def cached_update(config: LauncherConfig):
    """显示缓存的更新检查结果"""

    async def _run():
        async with LauncherOrchestrator(config) as orchestrator:
            return orchestrator.get_cached_update_info()

    info = run(_run)
    if info is None:
        click.echo("没有可用的缓存（从未检查或已过期）")
        return
    _print_update(info)


@main.command()
@click.argument("a")
@click.argument("b")
def compare(a: str, b: str):
    """比较两个版本号，输出 -1 / 0 / 1"""
    click.echo(VersionComparator.compare(a, b))


@main.command()
@click.option(
    "--experimental/--stable",
    "experimental",
    default=None,
    help="切换到实验渠道或稳定渠道",
)
@click.pass_obj
def channel(config: LauncherConfig, experimental: Optional[bool]):
    """查看或切换更新渠道"""

    async def _run():
        async with LauncherOrchestrator(config) as orchestrator:
            if experimental is not None:
                orchestrator.settings.prereleases_enabled = experimental
                orchestrator.resolver.clear_cache()
            return orchestrator.resolver.resolve_channel()

    click.echo(f"更新渠道: {run(_run).value}")


if __name__ == "__main__":
    main()
