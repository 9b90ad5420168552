# Services package.
#
# Listing core (one pipeline behind every article list):
#
#   filters          : listing modes -> storage predicate
#   pager            : limit/page validation, count and page slice
#   enrichment       : author summary + viewer favourite flag per article
#   listing_service  : feed / by-author / by-favourite / search
#
# Writes and single-record reads:
#
#   favourite_service: transactional favourite toggle
#   article_service  : article CRUD by slug + detail cache
#   comment_service  : comments on an article
#   user_service     : users, profiles, follow graph
#
# All service functions accept an AsyncSession as their first argument;
# the ``get_db`` dependency owns the request transaction, and the
# favourite/follow toggles commit their own unit of work.
