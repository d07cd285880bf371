"""
Test suites for the survey backoffice harness

- unit: the harness against an in-memory backoffice (always run)
- api: live API suites per area (auth, companies, employees, surveys, responses, reporting)
- e2e: complete live workflows
"""
