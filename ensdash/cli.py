"""
ensdash CLI: ENS names from the terminal.

Commands:
  ensdash names <address> [chain_id]       names the address owns, and the default selection
  ensdash check <label> [years]            validate, check availability, quote price
  ensdash register <label> [years]         commit, wait, register (needs ENSDASH_PRIVATE_KEY)
  ensdash records <name>                   profile text records, address, content hash
  ensdash set-text <name> <key> <value>    write one text record
  ensdash set-contenthash <name> <value>   ipfs://... or 0x...
  ensdash set-primary <name>               set the wallet's primary (reverse) name
"""

import sys
import threading
from typing import List, Optional

from ensdash.chain import Web3ChainGateway
from ensdash.config import configure_logging, default_chain_id, get_chain_config
from ensdash.directory import OwnedNameDirectory
from ensdash.errors import ValidationError
from ensdash.records import PROFILE_TEXT_KEYS, RecordEditor
from ensdash.registrar import NameRegistrar, RegistrationSession
from ensdash.subgraph import EnsSubgraphIndex
from ensdash.wallet import Wallet

USAGE = __doc__

REGISTER_ATTEMPTS = 3
REGISTER_RETRY_SECONDS = 10


def _eth(wei: int) -> str:
    return f"{wei / 10**18:.6f} ETH"


def _years(argv: List[str], index: int) -> int:
    if len(argv) > index:
        if not argv[index].isdigit():
            raise ValidationError(f"Years must be a whole number, got {argv[index]!r}.")
        return int(argv[index])
    return 1


def _gateway(chain_id: int, with_wallet: bool = False) -> Web3ChainGateway:
    chain = get_chain_config(chain_id)
    wallet = Wallet() if with_wallet else None
    print(f"🔌 Connecting to {chain.name} RPC...")
    return Web3ChainGateway.connect(chain, wallet=wallet)


def names_command(argv: List[str]) -> int:
    if not argv:
        print("Usage: ensdash names <address> [chain_id]")
        return 1
    address = argv[0]
    chain_id = int(argv[1]) if len(argv) > 1 and argv[1].isdigit() else default_chain_id()
    gateway = _gateway(chain_id)
    directory = OwnedNameDirectory(EnsSubgraphIndex(), lambda addr, _chain: gateway.primary_name(addr))
    result = directory.refresh(address, chain_id)
    if result.error:
        print(f"❌ {result.error}")
        return 1
    if not result.domains:
        print(f"No ENS names found for {address}.")
        return 0
    print(f"Found {len(result.domains)} name(s) for {result.address}:")
    for domain in result.domains:
        marker = "*" if domain.name == directory.selected_name else " "
        expiry = f"  (expires {domain.expiry_date})" if domain.expiry_date else ""
        print(f"  {marker} {domain.name}{expiry}")
    if directory.primary_name:
        print(f"Primary name: {directory.primary_name}")
    return 0


def check_command(argv: List[str]) -> int:
    if not argv:
        print("Usage: ensdash check <label> [years]")
        return 1
    chain = get_chain_config(default_chain_id())
    gateway = _gateway(chain.chain_id)
    registrar = NameRegistrar(gateway, owner=None, chain=chain)
    availability = registrar.check_availability(argv[0])
    if not availability.ok:
        print(f"❌ {availability.error}")
        return 1
    if not availability.available:
        print(f"❌ '{availability.label}.eth' is not available.")
        return 1
    print(f"✅ '{availability.label}.eth' is available")
    quote = registrar.quote_rent_price(availability.label, _years(argv, 1))
    if not quote.ok:
        print(f"⚠️  Could not get a price: {quote.error}")
        return 1
    print(f"💰 {quote.duration_years} year(s): {_eth(quote.price.total)} (send {_eth(quote.value_with_buffer)} incl. 10% buffer)")
    return 0


def _print_countdown(session: RegistrationSession, done: threading.Event) -> None:
    remaining = session.wait_remaining_seconds
    while remaining > 0 and not done.wait(1.0):
        remaining = session.wait_remaining_seconds
        print(f"   {remaining:>3}s remaining...", end="\r", flush=True)


def register_command(argv: List[str]) -> int:
    if not argv:
        print("Usage: ensdash register <label> [years]")
        return 1
    chain = get_chain_config(default_chain_id())
    gateway = _gateway(chain.chain_id, with_wallet=True)
    registrar = NameRegistrar(gateway, owner=gateway.wallet.address, chain=chain)
    session = registrar.new_session(argv[0], _years(argv, 1))

    print(f"\n📤 Step 1/2: Committing '{session.label}.eth'...")
    result = registrar.start_commit(session)
    if not result.ok:
        print(f"❌ {result.error}")
        return 1
    print(f"✅ Commit confirmed: {result.tx_hash}")

    print(f"\n⏳ Waiting {session.wait_seconds}s for the commitment to mature...")
    done = threading.Event()
    _print_countdown(session, done)
    print("   0s remaining ✅      ")

    for attempt in range(1, REGISTER_ATTEMPTS + 1):
        print(f"\n📤 Step 2/2: Registering '{session.name}'...")
        result = registrar.complete_registration(session)
        if result.ok:
            print(f"\n🎉 Registered '{session.name}' ({result.tx_hash})")
            return 0
        print(f"❌ {result.error}")
        if result.requires_reset or not result.retryable:
            registrar.reset(session)
            return 1
        if attempt < REGISTER_ATTEMPTS:
            print(f"🔁 Retrying in {REGISTER_RETRY_SECONDS}s...")
            done.wait(REGISTER_RETRY_SECONDS)
    print(f"❌ Giving up on '{session.name}' after {REGISTER_ATTEMPTS} attempts; commit again to retry.")
    registrar.reset(session)
    return 1


def records_command(argv: List[str]) -> int:
    if not argv:
        print("Usage: ensdash records <name>")
        return 1
    name = argv[0]
    chain = get_chain_config(default_chain_id())
    editor = RecordEditor(_gateway(chain.chain_id), chain)
    texts = editor.get_texts(name, PROFILE_TEXT_KEYS)
    if not texts.ok:
        print(f"❌ {texts.error}")
        return 1
    print(f"📇 {name}")
    address = editor.get_address(name)
    if address.values:
        print(f"   address: {address.values['addr']}")
    content = editor.get_content_hash(name)
    if content.values:
        print(f"   contenthash: {content.values['contenthash']}")
    for key, value in texts.values.items():
        print(f"   {key}: {value}")
    if not texts.values:
        print("   (no text records)")
    return 0


def _write_command(argv: List[str], arity: int, usage: str, action) -> int:
    if len(argv) < arity:
        print(f"Usage: {usage}")
        return 1
    chain = get_chain_config(default_chain_id())
    editor = RecordEditor(_gateway(chain.chain_id, with_wallet=True), chain)
    result = action(editor, *argv[:arity])
    if not result.ok:
        print(f"❌ {result.error}")
        return 1
    print(f"✅ {result.name}: {result.tx_hash}")
    return 0


COMMANDS = {
    "names": names_command,
    "check": check_command,
    "register": register_command,
    "records": records_command,
    "set-text": lambda argv: _write_command(
        argv, 3, "ensdash set-text <name> <key> <value>", lambda e, n, k, v: e.set_text(n, k, v)
    ),
    "set-contenthash": lambda argv: _write_command(
        argv, 2, "ensdash set-contenthash <name> <value>", lambda e, n, v: e.set_content_hash(n, v)
    ),
    "set-primary": lambda argv: _write_command(argv, 1, "ensdash set-primary <name>", lambda e, n: e.set_primary_name(n)),
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    configure_logging()
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] not in COMMANDS:
        if argv:
            print(f"Unknown command: {argv[0]}")
        print(USAGE)
        return 1
    try:
        return COMMANDS[argv[0]](argv[1:])
    except ValidationError as e:
        print(f"❌ {e.message}")
        return 1
    except (ConnectionError, RuntimeError) as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
