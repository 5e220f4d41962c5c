from typing import Dict, Any, Optional
import os
import ssl
from datetime import datetime, date
from json import (
    JSONEncoder,
    dumps as json_dumps,
)

class CetcdJSONEncoder(JSONEncoder):
    def default(self, obj: Any) -> str:
        if isinstance(obj, datetime):
            return obj.isoformat()
        elif isinstance(obj, date):
            return str(obj)
        return JSONEncoder.default(self, obj)

def json_pp(v: Any) -> str:
    return json_dumps(v, indent=2, sort_keys=True, cls=CetcdJSONEncoder)

def json_to_str(v: Any) -> str:
    return json_dumps(v, sort_keys=True, cls=CetcdJSONEncoder)

def force_str(v: Any, encoding:str='utf-8') -> str:
    if type(v) == bytes:
        return v.decode(encoding)
    else:
        return str(v)

def encode_params(params: Dict[str, Any]) -> Dict[str, str]:
    '''
    Encode request parameters the way etcd expects them,
    booleans as true/false and None values dropped.
    '''
    encoded = {}
    for k, v in params.items():
        if v is None:
            continue
        if isinstance(v, bool):
            v = 'true' if v else 'false'
        encoded[k] = force_str(v)
    return encoded

def abs_path(path: str) -> str:
    return os.path.join(os.getcwd(), path)

def home_path(path: str) -> str:
    home = os.path.expanduser('~')
    return os.path.join(home, path)

def get_cetcd_path(path:str) -> Optional[str]:
    candidates = []
    env_path = os.getenv('CETCD_PATH')
    if env_path:
        candidates.append(os.path.join(env_path, path))

    rel_path = '.cetcd/{}'.format(path)
    candidates.extend([
        abs_path(rel_path),
        home_path(rel_path),
        os.path.join('/etc/cetcd', path)])

    for p in candidates:
        if os.path.exists(p):
            return p
    return None

def get_ssl_context(ca: Optional[str]=None,
                    cert: Optional[str]=None,
                    key: Optional[str]=None) -> Optional[ssl.SSLContext]:
    if not (ca or cert):
        return None

    ssl_context = ssl.create_default_context(
        purpose=ssl.Purpose.SERVER_AUTH,
        cafile=ca or None)
    if cert:
        ssl_context.load_cert_chain(cert, key or None)
    return ssl_context

def import_module(spec: str) -> Any:
    mod = __import__(spec)
    for sec in spec.split('.')[1:]:
        mod = getattr(mod, sec)
    return mod
