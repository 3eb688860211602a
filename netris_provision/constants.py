# Log line format used by the command line tool.
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Environment variables.
ENV_LOG_LEVEL = "NETRIS_LOG_LEVEL"
ENV_PASSWORD = "NETRIS_PROVISION_PASS"

# Default (connect, read) timeout for Netris API calls, in seconds.
NETRIS_DEFAULT_TIMEOUT = (15, 90)

# Authentication scheme id expected by the Netris login call.
NETRIS_AUTH_SCHEME = 1

# API paths.
AUTH_PATH = "/api/auth"
SITES_PATH = "/api/sites"
TENANTS_PATH = "/api/tenants"
VPC_PATH = "/api/v2/vpc"
VPC_ID_PATH = VPC_PATH + "/%s"
VPC_RESOURCES_PATH = VPC_PATH + "/%s/resources"
IPAM_PATH = "/api/v2/ipam"
IPAM_SUBNETS_PATH = IPAM_PATH + "/subnets"
IPAM_ALLOCATION_PATH = IPAM_PATH + "/allocation"
IPAM_SUBNET_PATH = IPAM_PATH + "/subnet"
IPAM_TYPE_ID_PATH = IPAM_PATH + "/%s/%s"
VNET_PATH = "/api/v2/vnet"
VNET_ID_PATH = VNET_PATH + "/%s"
NAT_PATH = "/api/v2/nat"
NAT_ID_PATH = NAT_PATH + "/%s"
ACL_PATH = "/api/v2/acl"
ROUTES_PATH = "/api/v2/routes"
ROUTES_ID_PATH = ROUTES_PATH + "/%s"

# IPAM object types, as used in the delete path.
IPAM_TYPE_ALLOCATION = "allocation"
IPAM_TYPE_SUBNET = "subnet"

# IPAM subnet purposes.
PURPOSE_COMMON = "common"
PURPOSE_NAT = "nat"

# NAT rule kinds.
NAT_SNAT = "SNAT"
NAT_DNAT = "DNAT"
NAT_STATICNAT = "STATICNAT"
NAT_RULE_TYPES = (NAT_SNAT, NAT_DNAT, NAT_STATICNAT)

# NAT rule state and protocol values.
NAT_STATE_ENABLED = "enabled"
NAT_PROTOCOL_ALL = "all"

# vNet state on creation.
VNET_STATE_ACTIVE = "active"

# Firewall rule traffic directions.
TRAFFIC_INGRESS = "INGRESS"
TRAFFIC_EGRESS = "EGRESS"

# Full port range used when a rule leaves its port unset.
PORT_MIN = 1
PORT_MAX = 65535
PORT_UNSET = "null"

# Prefixes matching any address.
ANY_PREFIX = "ANY"
ALL_IP4_CIDRS = "0.0.0.0/0"
ALL_IP6_CIDRS = "::/0"

# Error kinds carried by exceptions and failed answers.
KIND_CONFIGURATION = "configuration"
KIND_TRANSPORT = "transport"
KIND_FAILURE = "failure"

# Reasons logged when a Netris call reports no success.
REASON_EMPTY = "Empty response"
REASON_FAILED = "Operation failed on Netris"
