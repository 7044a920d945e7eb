"""Runtime settings read from the environment (and an optional .env file)."""
import os

from dotenv import load_dotenv

load_dotenv()

# Account-level path at which participants export their root xpub. Records
# append one deterministic, non-hardened index to it.
DEFAULT_DERIVATION_PATH = os.getenv("COVENANT_DERIVATION_PATH", "m/44'/0'/0'")

MNEMONIC_PASSPHRASE = os.getenv("COVENANT_MNEMONIC_PASSPHRASE", "")
MNEMONIC_LANGUAGE = os.getenv("COVENANT_MNEMONIC_LANGUAGE", "english")
MNEMONIC_STRENGTH = int(os.getenv("COVENANT_MNEMONIC_STRENGTH", "128"))

# "main" -> xpub/xprv, "test" -> tpub/tprv
NETWORK = os.getenv("COVENANT_NETWORK", "main")

LOG_LEVEL = os.getenv("COVENANT_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("COVENANT_LOG_JSON", "0").lower() not in ("0", "false", "")
