"""
Voile Configuration
Domain tag and logging settings for a prover or verifier deployment.

Sources, in order of use:
  - defaults (mainnet domain, INFO logging)
  - a JSON file (VoileConfig.from_file)
  - environment variables VOILE_DOMAIN / VOILE_LOG_LEVEL (VoileConfig.from_env)

Secrets never live here. The owner secret and encryption key are held by
the caller's key custodian.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from voile.nullifiers import NullifierStore
from voile.proof import DEFAULT_DOMAIN, ProofGenerator, ProofVerifier

logger = logging.getLogger(__name__)

ENV_DOMAIN = "VOILE_DOMAIN"
ENV_LOG_LEVEL = "VOILE_LOG_LEVEL"


@dataclass
class VoileConfig:
    """Settings shared by generator and verifier."""
    domain: str = DEFAULT_DOMAIN.decode("ascii")
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __post_init__(self):
        if not isinstance(self.domain, str) or not self.domain:
            raise ValueError(f"domain must be a non-empty string, got {self.domain!r}")
        if not isinstance(self.log_level, str) or not isinstance(
            logging.getLevelName(self.log_level.upper()), int
        ):
            raise ValueError(f"Unknown log level: {self.log_level!r}")

    @classmethod
    def from_env(cls, base: "VoileConfig | None" = None) -> "VoileConfig":
        """Overlay environment variables on ``base`` (or the defaults)."""
        config = base or cls()
        return cls(
            domain=os.environ.get(ENV_DOMAIN, config.domain),
            log_level=os.environ.get(ENV_LOG_LEVEL, config.log_level),
            log_format=config.log_format,
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "VoileConfig":
        """Load from a JSON file. Unknown keys are ignored."""
        data = json.loads(Path(path).read_text())
        if not isinstance(data, dict):
            raise ValueError(f"Config file must hold a JSON object, got {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_file(self, path: str | Path) -> Path:
        path = Path(path)
        path.write_text(json.dumps(asdict(self), indent=2))
        return path

    def configure_logging(self) -> logging.Logger:
        """
        Attach a stream handler to the ``voile`` logger.

        The library installs no handlers on its own; applications call this
        (or configure logging themselves) to see protocol events.
        """
        root = logging.getLogger("voile")
        root.setLevel(self.log_level.upper())
        if not root.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(self.log_format))
            root.addHandler(handler)
        return root

    def generator(self) -> ProofGenerator:
        return ProofGenerator(self.domain)

    def verifier(self, store: NullifierStore | None = None) -> ProofVerifier:
        return ProofVerifier(self.domain, store=store)
