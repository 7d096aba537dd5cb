"""Element annotation: the in-page script, its Python-side driver and the index resolver."""

from .script import DEFAULT_PARAMS, AnnotationScriptParams, build_init_script

__all__ = ["DEFAULT_PARAMS", "AnnotationScriptParams", "build_init_script"]
