"""snapledger - ledger core for shared pool and collateral accounts."""

__version__ = "0.1.0"


# The CLI pulls in storage and click; load it only when asked for
def __getattr__(name):
    if name == "main":
        from snapledger.cli.main import main
        return main
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
