# Services package.
#
# Each module exposes async functions holding the business rules and
# database access for one aggregate:
#
#   article_service  : lifecycle, slugs, publishing, feeds, view counts
#   image_service    : uploads and the one-primary-image rule
#   category_service : CRUD with the restrict-while-referenced rule
#   user_service     : admin accounts, Owner protection
#   auth_service     : credential exchange for bearer tokens
#
# Every function takes an AsyncSession first; the router layer owns the
# transaction boundary through the ``get_db`` dependency.  Failures are
# raised as ``newsdesk.exceptions`` errors.
