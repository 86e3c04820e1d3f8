from typing import Optional


class Cw1Error(Exception):
    pass


class ConfigError(Cw1Error):
    pass


class WalletError(Cw1Error):
    """Keyfile could not be decrypted or parsed. The keyfile is left untouched."""


class ArtifactFetchError(Cw1Error):
    pass


class RemoteQueryError(Cw1Error):
    pass


class RemoteExecutionError(Cw1Error):
    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        code: Optional[int] = None,
        raw_log: Optional[str] = None,
    ):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.code = code
        self.raw_log = raw_log
