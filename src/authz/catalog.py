"""Default permission catalog seeded at startup.

Each entry names the roles granted the permission on a fresh install.
Admins change grants at runtime through the permission matrix; seeding
never overwrites an existing grant row.
"""

from dataclasses import dataclass

from src.authz.roles import Role


class PermissionGroup:
    """Feature groups used to organise permissions in the admin UI."""

    DASHBOARD = "dashboard"
    CLIENTS = "clients"
    LEADS = "leads"
    DOCUMENTS = "documents"
    SIGNATURES = "signatures"
    PAYMENTS = "payments"
    APPOINTMENTS = "appointments"
    DEADLINES = "deadlines"
    TASKS = "tasks"
    SUPPORT = "support"
    KNOWLEDGE = "knowledge"
    REPORTS = "reports"
    SETTINGS = "settings"
    AGENTS = "agents"
    BRANDING = "branding"
    ADMIN = "admin"


@dataclass(frozen=True)
class PermissionCatalogEntry:
    """Definition of one permission and its default grants."""

    slug: str
    label: str
    description: str
    default_roles: tuple[Role, ...]

    @property
    def feature_group(self) -> str:
        """Group name, taken from the slug prefix (``payments.view`` -> ``payments``)."""
        return self.slug.split(".", 1)[0]


_EVERYONE = (Role.CLIENT, Role.AGENT, Role.TAX_OFFICE, Role.ADMIN)
_STAFF = (Role.AGENT, Role.TAX_OFFICE, Role.ADMIN)
_OFFICE = (Role.TAX_OFFICE, Role.ADMIN)
_ADMIN = (Role.ADMIN,)

# Agent grants on client-scoped data apply to assigned clients only;
# that scoping is enforced by the endpoints, not by the catalog.
DEFAULT_PERMISSIONS: tuple[PermissionCatalogEntry, ...] = (
    PermissionCatalogEntry("dashboard.view", "View Dashboard", "Access the main dashboard", _EVERYONE),
    PermissionCatalogEntry("dashboard.stats", "View Statistics", "View dashboard statistics and charts", _STAFF),
    PermissionCatalogEntry("clients.view", "View Clients", "View client list and details (Agent: assigned clients only)", _STAFF),
    PermissionCatalogEntry("clients.view_all", "View All Clients", "View complete client list (global access)", _OFFICE),
    PermissionCatalogEntry("clients.create", "Create Clients", "Add new clients", _STAFF),
    PermissionCatalogEntry("clients.edit", "Edit Clients", "Modify client information (Agent: assigned clients only)", _STAFF),
    PermissionCatalogEntry("clients.delete", "Delete Clients", "Remove clients from system", _OFFICE),
    PermissionCatalogEntry("clients.assign", "Assign Clients to Agent", "Assign or reassign clients to agents", _OFFICE),
    PermissionCatalogEntry("leads.view", "View Leads", "View lead list and details (Agent: assigned leads only)", _STAFF),
    PermissionCatalogEntry("leads.create", "Create Leads", "Add new leads", _STAFF),
    PermissionCatalogEntry("leads.edit", "Edit Leads", "Modify lead information (Agent: assigned leads only)", _STAFF),
    PermissionCatalogEntry("leads.convert", "Convert Leads", "Convert leads to clients", _STAFF),
    PermissionCatalogEntry("documents.view", "View Documents", "View uploaded documents (Agent: assigned clients only)", _EVERYONE),
    PermissionCatalogEntry("documents.upload", "Upload Documents", "Upload new documents", _EVERYONE),
    PermissionCatalogEntry("documents.download", "Download Documents", "Download documents", _EVERYONE),
    PermissionCatalogEntry("documents.delete", "Delete Documents", "Remove documents", _OFFICE),
    PermissionCatalogEntry("documents.request", "Request Documents", "Request documents from clients", _STAFF),
    PermissionCatalogEntry("signatures.view", "View E-Signatures", "View e-signature requests", _EVERYONE),
    PermissionCatalogEntry("signatures.create", "Create E-Signature Requests", "Send Form 8879 for signature", _STAFF),
    PermissionCatalogEntry("signatures.sign_as_client", "Sign as Client", "Sign e-signature requests as the taxpayer", (Role.CLIENT,)),
    PermissionCatalogEntry("signatures.sign_as_preparer", "Sign as Preparer", "Sign e-signature requests as the tax preparer", _STAFF),
    PermissionCatalogEntry("signatures.download_pdf", "Download Signed PDFs", "Download completed Form 8879 PDFs", _STAFF),
    PermissionCatalogEntry("payments.view", "View Payments", "View payment records (Agent: assigned clients only, read-only)", _STAFF),
    PermissionCatalogEntry("payments.request", "Request Payment", "Request payment from client (creates pending request)", _STAFF),
    PermissionCatalogEntry("payments.create", "Create Payments", "Add and record payment records", _OFFICE),
    PermissionCatalogEntry("payments.approve", "Approve Payments", "Approve pending payment requests", _OFFICE),
    PermissionCatalogEntry("payments.edit", "Edit Payments", "Modify payment information", _OFFICE),
    PermissionCatalogEntry("payments.delete", "Delete Payments", "Remove payment records", _ADMIN),
    PermissionCatalogEntry("appointments.view", "View Appointments", "View scheduled appointments", _EVERYONE),
    PermissionCatalogEntry("appointments.create", "Create Appointments", "Schedule new appointments", _STAFF),
    PermissionCatalogEntry("appointments.edit", "Edit Appointments", "Modify appointment details", _STAFF),
    PermissionCatalogEntry("appointments.delete", "Delete Appointments", "Cancel appointments", _OFFICE),
    PermissionCatalogEntry("deadlines.view", "View Tax Deadlines", "View tax deadline calendar", _STAFF),
    PermissionCatalogEntry("deadlines.create", "Create Deadlines", "Add new tax deadlines", _OFFICE),
    PermissionCatalogEntry("deadlines.edit", "Edit Deadlines", "Modify deadline information", _OFFICE),
    PermissionCatalogEntry("tasks.view", "View Tasks", "View task board (Agent: assigned tasks only)", _STAFF),
    PermissionCatalogEntry("tasks.create", "Create Tasks", "Add new tasks", _STAFF),
    PermissionCatalogEntry("tasks.edit", "Edit Tasks", "Modify task details", _STAFF),
    PermissionCatalogEntry("tasks.assign", "Assign Tasks", "Assign tasks to team members", _OFFICE),
    PermissionCatalogEntry("support.view", "View Support Tickets", "View support tickets", _EVERYONE),
    PermissionCatalogEntry("support.create", "Create Support Tickets", "Submit support requests", _EVERYONE),
    PermissionCatalogEntry("support.respond", "Respond to Tickets", "Reply to support tickets", _STAFF),
    PermissionCatalogEntry("support.close", "Close Tickets", "Close support tickets", _STAFF),
    PermissionCatalogEntry("support.internal_notes", "Internal Notes", "Add and view internal notes on tickets (hidden from clients)", _STAFF),
    PermissionCatalogEntry("knowledge.view", "View Knowledge Base", "Access knowledge base articles", _EVERYONE),
    PermissionCatalogEntry("knowledge.create", "Create Articles", "Create knowledge base articles", _STAFF),
    PermissionCatalogEntry("knowledge.edit", "Edit Articles", "Edit knowledge base articles", _STAFF),
    PermissionCatalogEntry("reports.view", "View Reports", "Access reports and analytics (Agent: assigned clients only)", _STAFF),
    PermissionCatalogEntry("reports.export", "Export Reports", "Export report data", _OFFICE),
    PermissionCatalogEntry("settings.view", "View Settings", "View system settings", _OFFICE),
    PermissionCatalogEntry("settings.edit", "Edit Settings", "Modify system settings", _ADMIN),
    PermissionCatalogEntry("agents.view", "View Agents", "View agent list and details", _OFFICE),
    PermissionCatalogEntry("agents.create", "Create Agent", "Create new agent accounts", _OFFICE),
    PermissionCatalogEntry("agents.edit", "Edit Agent", "Modify agent information", _OFFICE),
    PermissionCatalogEntry("agents.disable", "Disable Agent", "Disable or deactivate agent accounts", _OFFICE),
    PermissionCatalogEntry("branding.view", "View Branding", "View office branding settings", _OFFICE),
    PermissionCatalogEntry("branding.manage", "Manage Office Branding", "Customize office logo, colors, and theme", _OFFICE),
    PermissionCatalogEntry("branding.personal_theme", "Personal Theme", "Set personal light/dark theme preference", _EVERYONE),
    PermissionCatalogEntry("admin.users", "Manage Users", "Manage user accounts and roles", _ADMIN),
    PermissionCatalogEntry("admin.permissions", "Manage Permissions", "Configure role permissions", _ADMIN),
    PermissionCatalogEntry("admin.audit", "View Audit Logs", "View system audit logs (Tax Office: office-scoped)", _OFFICE),
    PermissionCatalogEntry("admin.invites", "Manage Invites", "Create and manage staff invites (Tax Office: office-scoped)", _OFFICE),
    PermissionCatalogEntry("admin.system", "System Administration", "Full system administration access", _ADMIN),
)

CATALOG_SLUGS: frozenset[str] = frozenset(entry.slug for entry in DEFAULT_PERMISSIONS)
