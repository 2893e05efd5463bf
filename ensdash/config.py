"""
Deployment table, protocol constants and environment loading.

.env is loaded once at import (never overriding variables already set).
Addresses are the public ENS deployments; RPC and subgraph endpoints can be
overridden per chain from the environment.
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from ensdash.errors import ValidationError

for _dir in [Path.cwd(), Path(__file__).parent.parent]:
    _env_file = _dir / ".env"
    if _env_file.exists():
        load_dotenv(_env_file, override=False)
        break

# --- Protocol parameters (must match the controller) ---
SECONDS_PER_YEAR = 31_536_000  # 365-day year
COMMIT_WAIT_SECONDS = 60
PRICE_BUFFER_PERCENT = 110
MIN_LABEL_LENGTH = 3
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MAINNET_CHAIN_ID = 1
SEPOLIA_CHAIN_ID = 11155111

ENV_PRIVATE_KEY = "ENSDASH_PRIVATE_KEY"
ENV_PRIVATE_KEY_LEGACY = "CLIENT_PRIVATE_KEY"
ENV_CHAIN_ID = "ENSDASH_CHAIN_ID"
ENV_LOG_LEVEL = "ENSDASH_LOG_LEVEL"

ENS_REGISTRY = "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"  # same address on every chain


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    name: str
    rpc_url: str
    subgraph_url: str
    registrar_controller: str
    public_resolver: str
    registry: str
    reverse_registrar: str


def _subgraph_url(chain_id: int, default: str) -> str:
    return os.getenv(f"ENS_SUBGRAPH_URL_{chain_id}", default)


def _build_chains() -> Dict[int, ChainConfig]:
    return {
        MAINNET_CHAIN_ID: ChainConfig(
            chain_id=MAINNET_CHAIN_ID,
            name="mainnet",
            rpc_url=os.getenv("MAINNET_RPC", "https://eth.llamarpc.com"),
            subgraph_url=_subgraph_url(
                MAINNET_CHAIN_ID, "https://api.thegraph.com/subgraphs/name/ensdomains/ens"
            ),
            registrar_controller="0x253553366Da8546fC250F225fe3d25d0C782303b",
            public_resolver="0x231b0Ee14048e9dCcD1d247744d114a4EB5E8E63",
            registry=ENS_REGISTRY,
            reverse_registrar="0xa58E81fe9b61B5c3fE2AFD33CF304c454AbFc7Cb",
        ),
        SEPOLIA_CHAIN_ID: ChainConfig(
            chain_id=SEPOLIA_CHAIN_ID,
            name="sepolia",
            rpc_url=os.getenv("SEPOLIA_RPC", "https://ethereum-sepolia-rpc.publicnode.com"),
            subgraph_url=_subgraph_url(
                SEPOLIA_CHAIN_ID,
                "https://api.studio.thegraph.com/query/49574/enssepolia/version/latest",
            ),
            registrar_controller="0xFED6a969AaA60E4961FCD3EBF1A2e8913ac65B72",
            public_resolver="0x8FADE66B79cC9f707aB26799354482EB93a5B7dD",
            registry=ENS_REGISTRY,
            reverse_registrar="0x084b1c3C81545d370f3634392De611CaaBFf8148",
        ),
    }


CHAINS = _build_chains()


def get_chain_config(chain_id: int) -> ChainConfig:
    """Deployment for chain_id. Raises ValidationError for chains without ENS."""
    try:
        return CHAINS[int(chain_id)]
    except (KeyError, TypeError, ValueError):
        supported = ", ".join(str(c) for c in sorted(CHAINS))
        raise ValidationError(f"Unsupported chain {chain_id!r} (supported: {supported}).")


def default_chain_id() -> int:
    raw = (os.getenv(ENV_CHAIN_ID) or "").strip()
    return int(raw) if raw.isdigit() else SEPOLIA_CHAIN_ID


def configure_logging(level: Optional[str] = None) -> None:
    """Send ensdash logs to stderr. Level from argument, ENSDASH_LOG_LEVEL, or WARNING."""
    level_name = (level or os.getenv(ENV_LOG_LEVEL) or "WARNING").upper()
    logger = logging.getLogger("ensdash")
    logger.setLevel(getattr(logging, level_name, logging.WARNING))
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
