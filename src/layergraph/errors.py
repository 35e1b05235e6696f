"""Exceptions raised while building, validating and loading layer graphs."""


class NetConfigError(ValueError):
    """Base class for every rejected configuration or model file."""


class DeclarationError(NetConfigError):
    """A declaration or value does not follow the textual grammar."""


class UnknownLayerTypeError(NetConfigError):
    """The layer-type catalog has no entry for a type name."""

    def __init__(self, name: str):
        super().__init__(f"unknown layer type: {name!r}")
        self.name = name


class LayerTagError(NetConfigError):
    """A shared-layer tag is missing, undefined, or defined twice."""


class SharedLayerSettingError(NetConfigError):
    """A setting was attached to a shared layer."""


class StructureMismatchError(NetConfigError):
    """A configuration pass disagrees with the already finalized graph."""


class InvalidModelFileError(NetConfigError):
    """A serialized graph is truncated, absent or of an unsupported version."""


class ConfigSyntaxError(NetConfigError):
    """A configuration text line cannot be split into a key and a value."""

    def __init__(self, message: str, line_number: int):
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number
