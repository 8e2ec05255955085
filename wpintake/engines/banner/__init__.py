"""Banner engine — release banner images."""

from wpintake.engines.banner.renderer import SvgBannerRenderer

__all__ = ["SvgBannerRenderer"]
