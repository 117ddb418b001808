from pathlib import Path

import orchestrator

#
# Filesystem
#

PROJECT_ROOT = Path(orchestrator.__file__).parent.parent
DEPLOYMENTS_DIR = PROJECT_ROOT / "deployments"
RELEASES_DIR = PROJECT_ROOT / "releases"
MULTISIG_DIR = PROJECT_ROOT / "multisig"
STORAGE_LAYOUTS_DIR = PROJECT_ROOT / "storage_layouts"

RELEASE_FILENAME = "contracts.json"

STANDARD_JSON_FORMAT = {"indent": 2}

#
# Networks
#

# deployments on these networks are never verified nor released
LOCAL_NETWORKS = ["local", "localhost", "hardhat"]
FORK_SUFFIX = "-fork"

#
# Contracts
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"
PROXY_CONTRACT = "ERC1967Proxy"

IMPLEMENTATION_SUFFIX = "_Implementation"
PROXY_SUFFIX = "_Proxy"
DEFAULT_INITIALIZER = "initialize"

# EIP1967 Implementation slot - https://eips.ethereum.org/EIPS/eip-1967#logic-contract-address
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC

MAX_UINT256 = 2**256 - 1

# Strategy contract types
AAVE_V3 = "AaveV3"
AAVE_V3_VESPER_BORROW = "AaveV3VesperBorrow"
AAVE_V3_VESPER_BORROW_FOR_STETH = "AaveV3VesperBorrowForStETH"
AAVE_V3_SOMMELIER_BORROW = "AaveV3SommelierBorrow"
AAVE_V3_SOMMELIER_BORROW_FOR_STETH = "AaveV3SommelierBorrowForStETH"
COMPOUND_V3 = "CompoundV3"
COMPOUND_V3_BORROW = "CompoundV3Borrow"
COMPOUND_V3_VESPER_BORROW = "CompoundV3VesperBorrow"
CONVEX = "Convex"
CURVE = "Curve"
EULER_V2 = "EulerV2"
EXTRA_FINANCE = "ExtraFinance"
FRAXLEND_V1 = "FraxlendV1"
FRAXLEND_V1_VESPER_BORROW = "FraxlendV1VesperBorrow"
MORPHO_VAULT = "MorphoVault"
SOMMELIER = "Sommelier"
STARGATE_V2 = "StargateV2"
YEARN = "Yearn"

STRATEGY_CONTRACTS = [
    AAVE_V3,
    AAVE_V3_VESPER_BORROW,
    AAVE_V3_VESPER_BORROW_FOR_STETH,
    AAVE_V3_SOMMELIER_BORROW,
    AAVE_V3_SOMMELIER_BORROW_FOR_STETH,
    COMPOUND_V3,
    COMPOUND_V3_BORROW,
    COMPOUND_V3_VESPER_BORROW,
    CONVEX,
    CURVE,
    EULER_V2,
    EXTRA_FINANCE,
    FRAXLEND_V1,
    FRAXLEND_V1_VESPER_BORROW,
    MORPHO_VAULT,
    SOMMELIER,
    STARGATE_V2,
    YEARN,
]

#
# Collaborator interfaces
#

ERC20_ABI = [
    {
        "type": "function",
        "name": "allowance",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

POOL_ACCOUNTANT_ABI = [
    {
        "type": "function",
        "name": "addStrategy",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "strategy_", "type": "address"},
            {"name": "debtRatio_", "type": "uint256"},
            {"name": "externalDepositFee_", "type": "uint256"},
        ],
        "outputs": [],
    },
]
