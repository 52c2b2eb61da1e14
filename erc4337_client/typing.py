from typing import NewType

UserOperationHash = NewType('UserOperationHash', str)
TransactionHash = NewType('TransactionHash', str)
Address = NewType('Address', str)
Hex = NewType('Hex', str)

ZERO_ADDRESS = Address("0x0000000000000000000000000000000000000000")
