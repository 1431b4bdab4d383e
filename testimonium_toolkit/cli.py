#!/usr/bin/env python3
"""
Unified CLI for Testimonium Toolkit.

Chains are addressed by the labels configured through CHAIN_<id>_RPC_URL;
by convention chain 0 is the target chain and chain 1 the verifying chain.

Examples:
  - Account
    testimonium account
    testimonium balance --chain 0 --chain 1
    testimonium stake deposit --chain 1 --amount 1000000000000000000

  - Headers
    testimonium submit --target 0 --chain 1 --block-number 9000000
    testimonium submit --target 0 --chain 1 --block-number 9000001 --randomize
    testimonium dispute --chain 1 --block-hash 0x... --dataset-dir ./ethash
    testimonium exists --chain 1 --block-hash 0x...

  - Proofs
    testimonium proof tx --target 0 --tx-hash 0x...
    testimonium proof state --target 0 --address 0x... --block-number 9000000
    testimonium verify receipt --target 0 --chain 1 --tx-hash 0x... --confirmations 4
    testimonium verify receipt --chain 1 --proof-file output/receipt_proof.json

  - Ethash
    testimonium set-epoch-data --chain 1 --file epoch_300.json
"""

import argparse
from typing import List, Optional

from testimonium_toolkit.client import TestimoniumClient
from testimonium_toolkit.commands.validation import (
    validate_chain_id,
    validate_eth_address,
    validate_hash,
    validate_value_type,
)
from testimonium_toolkit.proofs.dataset import PrecomputedDatasetProvider
from testimonium_toolkit.proofs.generators.header_codec import (
    randomize_header,
)
from testimonium_toolkit.proofs.types import MerkleProof, TrieValueType
from testimonium_toolkit.shared.exceptions import (
    NonRetryableException,
    RetryableException,
)
from testimonium_toolkit.shared.logging import set_log_level
from testimonium_toolkit.utils.file_utils import load_epoch_data, load_json
from testimonium_toolkit.utils.formatters import (
    console,
    create_header_table,
    format_hex,
    proof_from_json,
    proof_to_json,
    save_json_output,
)


def _build_proof(
    client: TestimoniumClient,
    value_type: TrieValueType,
    args: argparse.Namespace,
) -> MerkleProof:
    target = validate_chain_id(args.target)
    if value_type == TrieValueType.STATE:
        if not args.address or args.block_number is None:
            raise ValueError("State proofs need --address and --block-number")
        address = validate_eth_address(args.address)
        return client.generate_merkle_proof_for_state(
            target, address, args.block_number
        )

    if not args.tx_hash:
        raise ValueError("Transaction and receipt proofs need --tx-hash")
    tx_hash = format_hex(validate_hash(args.tx_hash, "tx_hash"))
    if value_type == TrieValueType.TRANSACTION:
        return client.generate_merkle_proof_for_tx(target, tx_hash)
    return client.generate_merkle_proof_for_receipt(target, tx_hash)


def cmd_account(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    console.print(f"Account: {client.account.address}")


def cmd_balance(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    chain_ids = [validate_chain_id(c) for c in args.chain]
    for chain_id in chain_ids:
        console.print(
            f"Chain {chain_id}: {client.balance(chain_id)} wei"
        )
    if len(chain_ids) > 1:
        console.print(f"Total: {client.total_balance(chain_ids)} wei")


def cmd_stake(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    chain_id = validate_chain_id(args.chain)

    if args.action == "get":
        console.print(f"Stake: {client.get_stake(chain_id)} wei")
        return

    if args.amount is None or args.amount <= 0:
        raise ValueError("--amount must be a positive number of wei")

    if args.action == "deposit":
        client.deposit_stake(chain_id, args.amount)
        console.print(f"[green]Deposited {args.amount} wei[/green]")
    else:
        withdrawn = client.withdraw_stake(chain_id, args.amount)
        console.print(f"[green]Withdrew {withdrawn} wei[/green]")


def cmd_submit(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    target = validate_chain_id(args.target)
    chain_id = validate_chain_id(args.chain)

    header = client.header_by_number(target, args.block_number)
    if args.randomize:
        header = randomize_header(header)
        console.print("[yellow]Submitting a randomized header[/yellow]")

    block_hash = client.submit_header(chain_id, header)
    console.print(
        f"[green]Header {format_hex(block_hash)} submitted[/green]"
    )


def cmd_dispute(args: argparse.Namespace) -> None:
    chain_id = validate_chain_id(args.chain)
    block_hash = validate_hash(args.block_hash, "block_hash")

    client = TestimoniumClient(
        dataset_provider=PrecomputedDatasetProvider(args.dataset_dir)
    )
    result = client.dispute_block(chain_id, block_hash, args.from_block)

    console.print(str(result))
    if result.removed_branch_root is not None:
        console.print(
            f"[yellow]Removed branch rooted at "
            f"{format_hex(result.removed_branch_root)}[/yellow]"
        )


def cmd_exists(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    chain_id = validate_chain_id(args.chain)
    block_hash = validate_hash(args.block_hash, "block_hash")

    exists = client.block_header_exists(chain_id, block_hash)
    console.print(
        f"Header {format_hex(block_hash)} "
        f"{'is' if exists else 'is not'} stored"
    )


def cmd_header(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    chain_id = validate_chain_id(args.chain)
    block_hash = validate_hash(args.block_hash, "block_hash")

    console.print(
        create_header_table(client.get_block_header(chain_id, block_hash))
    )


def cmd_longest_chain(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    chain_id = validate_chain_id(args.chain)
    endpoint = client.longest_chain_endpoint(chain_id)
    console.print(f"Longest chain endpoint: {format_hex(endpoint)}")


def cmd_fee(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    chain_id = validate_chain_id(args.chain)
    fee = client.get_required_verification_fee(chain_id)
    console.print(f"Required verification fee: {fee} wei")


def cmd_proof(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    value_type = validate_value_type(args.kind)
    proof = _build_proof(client, value_type, args)

    output_data = {
        "value_type": value_type.name.lower(),
        **proof_to_json(proof),
    }
    filename = args.output or f"{value_type.name.lower()}_proof.json"
    save_json_output(output_data, filename)

    console.print(f"Merkle proof generated. Saved → output/{filename}")


def cmd_verify(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    value_type = validate_value_type(args.kind)
    chain_id = validate_chain_id(args.chain)
    if args.proof_file:
        proof = proof_from_json(load_json(args.proof_file))
    else:
        proof = _build_proof(client, value_type, args)

    fee = args.fee
    if fee is None:
        fee = client.get_required_verification_fee(chain_id)

    result = client.verify_merkle_proof(
        chain_id, proof, value_type, fee, args.confirmations
    )
    console.print(str(result))


def cmd_set_epoch_data(args: argparse.Namespace) -> None:
    client = TestimoniumClient()
    chain_id = validate_chain_id(args.chain)
    epoch_data = load_epoch_data(args.file)

    sent = client.set_epoch_data(chain_id, epoch_data)
    console.print(
        f"[green]Epoch {epoch_data['epoch']} submitted in {sent} "
        f"transactions[/green]"
    )


def _add_proof_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "kind", choices=["tx", "transaction", "receipt", "state"]
    )
    parser.add_argument("--target", type=int, default=0, help="Target chain")
    parser.add_argument("--tx-hash", type=str, help="Transaction hash")
    parser.add_argument("--address", type=str, help="Account (state proofs)")
    parser.add_argument(
        "--block-number", type=int, help="Block number (state proofs)"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="testimonium",
        description="Unified CLI for Testimonium Toolkit",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug messages"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # account
    p_acc = sub.add_parser("account", help="Show the signing account")
    p_acc.set_defaults(func=cmd_account)

    # balance
    p_bal = sub.add_parser("balance", help="Show account balances")
    p_bal.add_argument(
        "--chain", type=int, action="append", required=True
    )
    p_bal.set_defaults(func=cmd_balance)

    # stake
    p_st = sub.add_parser("stake", help="Get, deposit or withdraw stake")
    p_st.add_argument("action", choices=["get", "deposit", "withdraw"])
    p_st.add_argument("--chain", type=int, default=1)
    p_st.add_argument("--amount", type=int, help="Amount in wei")
    p_st.set_defaults(func=cmd_stake)

    # submit
    p_sub = sub.add_parser("submit", help="Submit a target chain header")
    p_sub.add_argument("--target", type=int, default=0)
    p_sub.add_argument("--chain", type=int, default=1)
    p_sub.add_argument("--block-number", type=int, required=True)
    p_sub.add_argument(
        "--randomize",
        action="store_true",
        help="Rotate the header roots to produce an invalid header",
    )
    p_sub.set_defaults(func=cmd_submit)

    # dispute
    p_dis = sub.add_parser("dispute", help="Dispute a submitted header")
    p_dis.add_argument("--chain", type=int, default=1)
    p_dis.add_argument("--block-hash", type=str, required=True)
    p_dis.add_argument(
        "--dataset-dir",
        type=str,
        required=True,
        help="Directory of precomputed ethash metadata",
    )
    p_dis.add_argument(
        "--from-block",
        type=int,
        default=0,
        help="First verifying chain block scanned for submissions",
    )
    p_dis.set_defaults(func=cmd_dispute)

    # exists
    p_ex = sub.add_parser("exists", help="Check if a header is stored")
    p_ex.add_argument("--chain", type=int, default=1)
    p_ex.add_argument("--block-hash", type=str, required=True)
    p_ex.set_defaults(func=cmd_exists)

    # header
    p_hd = sub.add_parser("header", help="Show a stored header")
    p_hd.add_argument("--chain", type=int, default=1)
    p_hd.add_argument("--block-hash", type=str, required=True)
    p_hd.set_defaults(func=cmd_header)

    # longest-chain
    p_lc = sub.add_parser(
        "longest-chain", help="Show the longest chain endpoint"
    )
    p_lc.add_argument("--chain", type=int, default=1)
    p_lc.set_defaults(func=cmd_longest_chain)

    # fee
    p_fee = sub.add_parser("fee", help="Show the required verification fee")
    p_fee.add_argument("--chain", type=int, default=1)
    p_fee.set_defaults(func=cmd_fee)

    # proof
    p_pr = sub.add_parser("proof", help="Generate a Merkle proof")
    _add_proof_arguments(p_pr)
    p_pr.add_argument("--output", type=str, help="Output filename")
    p_pr.set_defaults(func=cmd_proof)

    # verify
    p_ver = sub.add_parser(
        "verify", help="Verify a target chain item on the verifying chain"
    )
    _add_proof_arguments(p_ver)
    p_ver.add_argument("--chain", type=int, default=1)
    p_ver.add_argument(
        "--fee", type=int, help="Fee in wei (default: required fee)"
    )
    p_ver.add_argument("--confirmations", type=int, default=0)
    p_ver.add_argument(
        "--proof-file",
        type=str,
        help="Verify a proof saved by the proof command",
    )
    p_ver.set_defaults(func=cmd_verify)

    # set-epoch-data
    p_ep = sub.add_parser(
        "set-epoch-data", help="Submit ethash epoch data"
    )
    p_ep.add_argument("--chain", type=int, default=1)
    p_ep.add_argument("--file", type=str, required=True)
    p_ep.set_defaults(func=cmd_set_epoch_data)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        set_log_level("DEBUG")
    try:
        args.func(args)
    except (RetryableException, NonRetryableException, ValueError) as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
