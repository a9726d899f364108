"""Exception hierarchy for PlotLab."""


class PlotLabError(Exception):
    """Base exception for all PlotLab errors."""

    pass


class SVGError(PlotLabError):
    """Errors related to reading SVG documents."""

    pass


class SVGParseError(SVGError):
    """The document text is not well-formed SVG markup."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to parse SVG '{source}': {reason}")


class EmptyDocumentError(SVGParseError):
    """The document parsed, but contains no drawable geometry."""

    def __init__(self, source: str) -> None:
        super().__init__(source, "no drawable paths found")


class ElementSkipped(SVGError):
    """A single shape element could not be interpreted."""

    def __init__(self, tag: str, reason: str) -> None:
        self.tag = tag
        self.reason = reason
        super().__init__(f"Skipping <{tag}> element: {reason}")


class ConfigError(PlotLabError):
    """Error reading or parsing a configuration file."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration '{path}': {reason}")


class ProjectFormatError(PlotLabError):
    """A project file is not a valid project snapshot."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load project '{path}': {reason}")
