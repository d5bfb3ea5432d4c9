"""Release train services.

- versions: pom.xml version propagation
- notes: release notes from commit history
- dispatch: CI pipeline dispatch (sequential, then grouped)
- ci: GitLab REST client
- build: Maven builds
- train: the orchestrated release
"""
