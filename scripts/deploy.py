import os
import sys
import toml
from datetime import datetime
from getpass import getpass

from cw1_subkeys import CW1Contract, InitMsg, load_options, setup

if len(sys.argv) < 2:
    raise Exception("Must enter a chain as 1st cli arg.")

CHAIN = sys.argv[1]
# Optional: bind to an existing contract instead of uploading a new one
EXISTING_CONTRACT_ADDRESS = sys.argv[2] if len(sys.argv) > 2 else None

CONFIGS_FOLDER_PATH = "configs"
DEPLOYED_CONTRACTS_FOLDER_PATH = "deployed-contracts"

options = load_options(CHAIN, CONFIGS_FOLDER_PATH)
config = toml.load(f"{CONFIGS_FOLDER_PATH}/{CHAIN}.toml")

LABEL = config.get("LABEL", "cw1-subkeys")
# Admin address for future migrations
ADMIN_ADDRESS = config.get("ADMIN_ADDRESS")

# Create deployed-contracts folder if it doesn't exist
if not os.path.exists(DEPLOYED_CONTRACTS_FOLDER_PATH):
    os.makedirs(DEPLOYED_CONTRACTS_FOLDER_PATH)

DEPLOYED_CONTRACTS_INFO = {}


def main():
    password = os.environ.get("CW1_KEY_PASSWORD") or getpass(f"Password for {options.key_file}: ")
    client = setup(password, options=options)
    print("Wallet Address: ", client.sender_address, " with account balance: ", client.get_balance())

    factory = CW1Contract(client)

    if EXISTING_CONTRACT_ADDRESS:
        contract = factory.use(EXISTING_CONTRACT_ADDRESS)
        print_state(contract, client.sender_address)
        return

    init_deployed_contracts_info()

    code_id = factory.upload()
    print("cw1-subkeys Contract Code ID:", code_id)
    DEPLOYED_CONTRACTS_INFO["code-ids"]["cw1_subkeys_contract_code_id"] = code_id
    write_deployed_contracts_info()

    contract = factory.instantiate(
        code_id,
        InitMsg(admins=[client.sender_address], mutable=True),
        LABEL,
        admin=ADMIN_ADDRESS or client.sender_address,
    )
    print("cw1-subkeys Contract Address:", contract.contract_address)
    DEPLOYED_CONTRACTS_INFO["contract-addresses"]["cw1_subkeys_contract_address"] = contract.contract_address
    write_deployed_contracts_info()

    print_state(contract, client.sender_address)


def print_state(contract, address):
    admins = contract.admins()
    print("Admins: ", admins.admins, " mutable: ", admins.mutable)
    allowance = contract.allowance(address)
    print("Allowance of", address, ":", allowance.to_json())


def init_deployed_contracts_info():
    DEPLOYED_CONTRACTS_INFO["info"] = {}
    DEPLOYED_CONTRACTS_INFO["info"]["chain_id"] = options.chain_id
    DEPLOYED_CONTRACTS_INFO["info"]["deploy_date"] = datetime.now().strftime("%d/%m/%Y %H:%M:%S")
    DEPLOYED_CONTRACTS_INFO["code-ids"] = {}
    DEPLOYED_CONTRACTS_INFO["contract-addresses"] = {}
    write_deployed_contracts_info()


def write_deployed_contracts_info():
    with open(f"{DEPLOYED_CONTRACTS_FOLDER_PATH}/{CHAIN}.toml", "w") as f:
        toml.dump(DEPLOYED_CONTRACTS_INFO, f)


if __name__ == "__main__":
    main()
