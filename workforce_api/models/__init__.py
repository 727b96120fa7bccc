# workforce_api/models/__init__.py
import importlib
import pkgutil
import pathlib


def load_all():
    """Import every module in this package so all models register on db.metadata."""
    pkg_path = pathlib.Path(__file__).parent
    for mod in pkgutil.iter_modules([str(pkg_path)]):
        importlib.import_module(f"{__name__}.{mod.name}")
