import sys

from gtm_admin_audit.audit_runner import main

sys.exit(main())
