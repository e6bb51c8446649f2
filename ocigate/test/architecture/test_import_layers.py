from __future__ import annotations

from ._utils import iter_python_files, matches_prefix, package_root, parse_imports


def test_services_do_not_import_cli_modules() -> None:
    root = package_root()
    offenders: list[str] = []

    for file_path in iter_python_files(root / "services"):
        rel = file_path.relative_to(root)
        for item in parse_imports(file_path):
            if matches_prefix(item.module, "ocigate.cli") or matches_prefix(item.module, "typer"):
                offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")

    assert not offenders, "services -> cli dependency violations:\n" + "\n".join(offenders)


def test_lower_layers_do_not_import_services() -> None:
    root = package_root()
    offenders: list[str] = []

    for layer in ("core", "platform", "git"):
        for file_path in iter_python_files(root / layer):
            rel = file_path.relative_to(root)
            for item in parse_imports(file_path):
                if matches_prefix(item.module, "ocigate.services") or matches_prefix(
                    item.module, "ocigate.cli"
                ):
                    offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")

    assert not offenders, "layering violations:\n" + "\n".join(offenders)
