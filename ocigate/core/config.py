"""Typed configuration loading and access.

The workspace manifest `ocigate.toml` is parsed into frozen dataclasses. It is
consumed purely as configuration: which binaries to package, which base images
exist, where to push, what to release and which files key the build cache.

Example:

    [image]
    base = "distroless_python3"
    workspace_name = "dre"
    entrypoint = ["python3", "/{name}"]

    [image.env]
    GIT_PYTHON_REFRESH = "quiet"

    [bases.distroless_python3]
    reference = "gcr.io/distroless/python3-debian12"
    digest = "sha256:..."

    [[images]]
    name = "dre"
    src = "rs/cli/dre"

    [publish]
    registry = "ghcr.io/dfinity/dre"

    [[release.files]]
    source = "bazel-out/k8-opt/bin/rs/cli/dre"
    name = "dre"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_list,
    get_str,
    get_str_list,
    get_str_map,
    get_table,
)

__all__ = [
    "BaseImageConfig",
    "CacheConfig",
    "Config",
    "ConfigError",
    "ImageConfig",
    "ImageDefaults",
    "PublishConfig",
    "ReleaseConfig",
    "ReleaseFileConfig",
    "TriggerConfig",
    "CONFIG_FILE_NAME",
    "DEFAULT_BASE_IMAGE",
    "DEFAULT_CACHE_INPUTS",
    "load_config",
]

CONFIG_FILE_NAME = "ocigate.toml"

DEFAULT_BASE_IMAGE = "distroless_python3"
DEFAULT_WORKSPACE_NAME = "_main"
DEFAULT_ENTRYPOINT = ("python3", "/{name}")
DEFAULT_IMAGE_ENV = {"GIT_PYTHON_REFRESH": "quiet"}

# Top-level directories every base image already owns.
DEFAULT_RESERVED_NAMES = (
    "bin",
    "boot",
    "dev",
    "etc",
    "home",
    "lib",
    "lib64",
    "proc",
    "root",
    "run",
    "sbin",
    "sys",
    "tmp",
    "usr",
    "var",
)

DEFAULT_CACHE_INPUTS = (
    ".bazelversion",
    ".bazelrc",
    "WORKSPACE",
    "WORKSPACE.bazel",
    "MODULE.bazel",
    "Cargo.Bazel.lock",
)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ImageDefaults:
    """Defaults applied to every packaged binary."""

    base: str = DEFAULT_BASE_IMAGE
    image_root: str = "/"
    workspace_name: str = DEFAULT_WORKSPACE_NAME
    # Where a binary lives inside the build tree; {src} and {name} expand.
    source_template: str = "{src}"
    entrypoint: tuple[str, ...] = DEFAULT_ENTRYPOINT
    env: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_IMAGE_ENV))
    reserved_names: tuple[str, ...] = DEFAULT_RESERVED_NAMES


@dataclass(frozen=True, slots=True)
class BaseImageConfig:
    name: str
    reference: str
    digest: str
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ImageConfig:
    """One `[[images]]` entry: a binary to package."""

    name: str
    src: str
    # File listing the runtime closure, one build-tree path per line.
    closure: str | None = None
    base: str | None = None


@dataclass(frozen=True, slots=True)
class PublishConfig:
    registry: str = ""
    staging_branch: str = "container"
    tag_latest: bool = False


@dataclass(frozen=True, slots=True)
class ReleaseFileConfig:
    source: str
    name: str


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    files: tuple[ReleaseFileConfig, ...] = ()
    staging_dir: str = "release"
    changelog: str = "CHANGELOG.md"


@dataclass(frozen=True, slots=True)
class CacheConfig:
    namespace: str = "bazel"
    inputs: tuple[str, ...] = DEFAULT_CACHE_INPUTS
    dir: str = ".ocigate/cache"
    paths: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TriggerConfig:
    event: str
    branches: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    paths: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    image: ImageDefaults = field(default_factory=ImageDefaults)
    bases: Mapping[str, BaseImageConfig] = field(default_factory=dict)
    images: tuple[ImageConfig, ...] = ()
    publish: PublishConfig = field(default_factory=PublishConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    triggers: tuple[TriggerConfig, ...] = ()

    def image_named(self, name: str) -> ImageConfig | None:
        return next((i for i in self.images if i.name == name), None)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: A required key is missing from a list entry.
        """
        image: StrDict = get_table(data, "image") or {}
        publish: StrDict = get_table(data, "publish") or {}
        release: StrDict = get_table(data, "release") or {}
        cache: StrDict = get_table(data, "cache") or {}

        entrypoint = _entrypoint(image)
        reserved = get_str_list(image, "reserved_names")
        defaults = ImageDefaults(
            base=get_str(image, "base") or DEFAULT_BASE_IMAGE,
            image_root=get_str(image, "image_root") or "/",
            workspace_name=get_str(image, "workspace_name") or DEFAULT_WORKSPACE_NAME,
            source_template=get_str(image, "source_template") or "{src}",
            entrypoint=entrypoint,
            env=get_str_map(image, "env") if "env" in image else dict(DEFAULT_IMAGE_ENV),
            reserved_names=tuple(reserved) if reserved is not None else DEFAULT_RESERVED_NAMES,
        )

        bases: dict[str, BaseImageConfig] = {}
        for name, raw in (get_table(data, "bases") or {}).items():
            table = as_str_dict(raw)
            if table is None:
                raise ValueError(f"bases.{name} must be a table")
            reference = get_str(table, "reference")
            digest = get_str(table, "digest")
            if reference is None or digest is None:
                raise ValueError(f"bases.{name} needs 'reference' and 'digest'")
            bases[name] = BaseImageConfig(
                name=name,
                reference=reference,
                digest=digest,
                env=get_str_map(table, "env"),
            )

        images: list[ImageConfig] = []
        for raw in get_list(data, "images") or []:
            table = as_str_dict(raw)
            if table is None:
                raise ValueError("[[images]] entries must be tables")
            name = get_str(table, "name")
            src = get_str(table, "src")
            if name is None or src is None:
                raise ValueError("[[images]] entries need 'name' and 'src'")
            images.append(
                ImageConfig(
                    name=name,
                    src=src,
                    closure=get_str(table, "closure"),
                    base=get_str(table, "base"),
                )
            )

        release_files: list[ReleaseFileConfig] = []
        for raw in get_list(release, "files") or []:
            table = as_str_dict(raw)
            if table is None:
                raise ValueError("[[release.files]] entries must be tables")
            source = get_str(table, "source")
            if source is None:
                raise ValueError("[[release.files]] entries need 'source'")
            release_files.append(
                ReleaseFileConfig(source=source, name=get_str(table, "name") or Path(source).name)
            )

        triggers: list[TriggerConfig] = []
        for raw in get_list(data, "triggers") or []:
            table = as_str_dict(raw)
            if table is None:
                raise ValueError("[[triggers]] entries must be tables")
            triggers.append(
                TriggerConfig(
                    event=get_str(table, "event") or "push",
                    branches=tuple(get_str_list(table, "branches") or ()),
                    tags=tuple(get_str_list(table, "tags") or ()),
                    paths=tuple(get_str_list(table, "paths") or ()),
                )
            )

        cache_inputs = get_str_list(cache, "inputs")
        return cls(
            image=defaults,
            bases=bases,
            images=tuple(images),
            publish=PublishConfig(
                registry=(get_str(publish, "registry") or "").rstrip("/"),
                staging_branch=get_str(publish, "staging_branch") or "container",
                tag_latest=get_bool(publish, "tag_latest") or False,
            ),
            release=ReleaseConfig(
                files=tuple(release_files),
                staging_dir=get_str(release, "staging_dir") or "release",
                changelog=get_str(release, "changelog") or "CHANGELOG.md",
            ),
            cache=CacheConfig(
                namespace=get_str(cache, "namespace") or "bazel",
                inputs=tuple(cache_inputs) if cache_inputs is not None else DEFAULT_CACHE_INPUTS,
                dir=get_str(cache, "dir") or ".ocigate/cache",
                paths=tuple(get_str_list(cache, "paths") or ()),
            ),
            triggers=tuple(triggers),
        )


def _entrypoint(image: StrDict) -> tuple[str, ...]:
    if "entrypoint" not in image:
        return DEFAULT_ENTRYPOINT
    raw = get_list(image, "entrypoint")
    if not raw or not all(isinstance(a, str) for a in raw):
        raise ValueError("image.entrypoint must be a non-empty list of strings")
    return tuple(str(a) for a in raw)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))

