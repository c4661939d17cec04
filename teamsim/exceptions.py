# teamsim/exceptions.py
# Central place for small custom exceptions used across the codebase.

class ConfigError(ValueError):
    """
    Raised when a configuration is structurally unusable (unknown dotted
    path, section that is not a mapping).  Plain numeric defects never raise:
    the loader falls back to the dataclass default instead.
    """
    pass

class UnitSchemaError(ValueError):
    """
    Raised when a unit-mapping schema for scatter experiments is empty or
    ill-formed.  Scatter runs must not silently skip broken variables, so
    the caller always sees this.
    """
    pass
