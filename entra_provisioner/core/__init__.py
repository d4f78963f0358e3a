"""Core Provisioning Module

Pure Python provisioning logic, independent of the CLI.

Module Structure:
    - graph/            : Microsoft Graph client (HTTP, auth, directory, applications)
    - exchange.py       : Exchange Online admin API client (mail extension)
    - arm.py            : Azure Resource Manager client (resource-management extension)
    - permissions.py    : Permission catalogue and name → app role resolution
    - consent.py        : Admin consent via app role assignments
    - privilege.py      : Administrative role pre-flight gate
    - credentials.py    : Time-bounded client secret issuance
    - dependencies.py   : Client library install/import checks
    - connection.py     : Operator sign-in and shared client construction
    - orchestrator.py   : Stage sequencing and error taxonomy mapping
    - exceptions.py     : Provisioning error taxonomy
    - models.py         : Request, result and progress records

Usage Pattern:
    Import explicitly when needed:
        from entra_provisioner.core.orchestrator import ProvisioningOrchestrator
        from entra_provisioner.core.models import ProvisionRequest
"""
