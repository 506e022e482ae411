from typing import Optional

TERRAFORM_BLOCK = """\
terraform {{
  required_providers {{
    openstack = {{
      source  = "terraform-provider-openstack/openstack"
      version = "~> 1.54"
    }}
    null = {{
      source  = "hashicorp/null"
      version = "~> 3.2"
    }}
  }}
{backend}}}
"""

# Partial configuration: container, archive_container and state_name are
# supplied with -backend-config at init time.
SWIFT_BACKEND = """\

  backend "swift" {}
"""

PROVIDER_BLOCK = """\
provider "openstack" {
  auth_url    = var.auth_url
  region      = var.region
  user_name   = var.user_name
  password    = var.password
  tenant_id   = var.tenant_id
  domain_name = var.domain_name
}

# Provider variables
variable "auth_url"       { type = string }
variable "region"         { type = string }
variable "user_name"      { type = string }
variable "password"       {
  type      = string
  sensitive = true
}
variable "tenant_id"      { type = string }
variable "domain_name"    { type = string }
"""


def backend_block() -> str:
    return SWIFT_BACKEND


def preamble(backend: Optional[str] = None) -> str:
    return TERRAFORM_BLOCK.format(backend=backend or "") + "\n" + PROVIDER_BLOCK.rstrip("\n")
