class UnauthorizedError(Exception):
    """Missing, expired or malformed credential, or a connection that never identified."""
    code = 'UNAUTHORIZED'

    def to_dict(self):
        return {'code': self.code, 'message': str(self)}
