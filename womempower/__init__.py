"""
WomEmpower Loan DAO

Core imports are lazily loaded so that importing a submodule does not
pull in the whole governance stack. For direct module access, import
from submodules:

    from womempower.governance import LoanDAO, MappingBalanceOracle
    from womempower.storage import load_snapshot, save_snapshot
    from womempower.exceptions import ErrorCode, DAOError
"""

__version__ = "1.0.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'LoanDAO':
        from .governance.dao import LoanDAO
        return LoanDAO
    elif name == 'CallContext':
        from .governance.context import CallContext
        return CallContext
    elif name == 'DAOError':
        from .exceptions import DAOError
        return DAOError
    elif name == 'ErrorCode':
        from .exceptions import ErrorCode
        return ErrorCode
    raise AttributeError(f"module 'womempower' has no attribute {name!r}")

__all__ = ['LoanDAO', 'CallContext', 'DAOError', 'ErrorCode']
