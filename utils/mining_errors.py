class MiningError(Exception):
    """业务异常基类，status_code 对应 HTTP 状态码"""
    status_code = 400
    default_message = 'Mining request failed'

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'success': False, 'message': self.message}


class NotFound(MiningError):
    status_code = 404
    default_message = 'Mining account not found'


class QuotaExceeded(MiningError):
    default_message = 'No claims left for today'


class InsufficientBalance(MiningError):
    default_message = 'Not Enough Balance to Claim'


class TransactionFailure(MiningError):
    # 不向调用方暴露 SQL 细节
    status_code = 500
    default_message = 'Internal Server Error'
