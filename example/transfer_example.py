from decimal import Decimal

from rally_protocol.accounts import FileKeyManager, RallyAccountManager
from rally_protocol.networks import RallyNetworkFactory, RallyNetworkType

api_key = "your-rally-api-key"  # Replace with actual key
recipient = "0x1234567890123456789012345678901234567890"

account_manager = RallyAccountManager(FileKeyManager("rally_mnemonic.txt"))


async def main():
    network = RallyNetworkFactory.create(
        RallyNetworkType.BaseSepolia,
        api_key=api_key,
        account_manager=account_manager,
    )

    account = await account_manager.get_account()
    if account is None:
        account = await account_manager.create_account()
    print("Account:", account.address)

    claim_hash = await network.claim_rly()
    print("Claimed RLY:", claim_hash)
    print("Balance:", await network.get_display_balance())

    return await network.transfer(recipient, Decimal("1.5"))


if __name__ == "__main__":
    import asyncio
    tx_hash = asyncio.run(main())
    print("Transfer:", tx_hash)
