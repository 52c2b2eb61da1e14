from eth_account import Account


def import_owner_private_key(keystore_file_password, keystore_file_path):
    with open(keystore_file_path) as keyfile:
        encrypted_key = keyfile.read()
        private_key = Account.decrypt(encrypted_key, keystore_file_password)
        return "0x" + bytes(private_key).hex()


def public_address_from_private_key(private_key):
    public_address = Account.from_key(bytes.fromhex(private_key[2:]))
    return public_address.address
