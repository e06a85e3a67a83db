"""
functions that assist with content negotiation for a web service request
"""
import re

__all__ = [ 'is_content_type', 'match_accept', 'acceptable', 'order_accepts' ]

_qval_re = re.compile(r';\s*q=(\d+(\.\d+)?)')

def is_content_type(label: str) -> bool:
    """
    return True if the given format label should be interpreted as a content type (i.e. it uses
    MIME-type syntax, containing a '/').
    """
    return '/' in label

def match_accept(ctype: str, accepted: str):
    """
    return the more specific of two content types if they match each other (allowing for
    ``type/*`` wildcards), or None if they do not.
    """
    if ctype == accepted or (accepted.endswith('/*') and ctype.startswith(accepted[:-1])):
        return ctype
    if ctype.endswith('/*') and accepted.startswith(ctype[:-1]):
        return accepted
    return None

def acceptable(ctype: str, accepted):
    """
    return the first match of a content type against a list of acceptable content types, or
    None if there is no match.  Any type is acceptable when the list is empty.
    """
    if not accepted:
        return ctype
    if ctype in ['*', '*/*']:
        return list(accepted)[0]
    for ct in accepted:
        m = match_accept(ctype, ct)
        if m:
            return m
    return None

def order_accepts(accepts):
    """
    order the values from an HTTP Accept header by their q-values, dropping the q-values and any
    type that was given a q-value of zero.
    :param accepts:  the Accept header value, either as a str or a list of str
    :return:  a list of MIME types, most preferred first
    """
    if isinstance(accepts, str):
        accepts = [accepts]

    vals = []
    for hdr in accepts:
        for a in hdr.split(','):
            a = a.strip()
            if not a:
                continue
            m = _qval_re.search(a)
            q = float(m.group(1)) if m else 1.0
            vals.append((re.sub(r';.*$', '', a).strip(), q))

    # sort is stable so equally weighted types keep their order
    vals.sort(key=lambda a: a[1], reverse=True)
    return [a[0] for a in vals if a[1] > 0]
